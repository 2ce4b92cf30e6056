#!/usr/bin/env python3
import os
import sys
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone

import rich.console
import rich.table

from diarylib import bot_settings
from diarylib import diary_issue
from diarylib import diary_recap
from diarylib import event_calendar
from diarylib import github_client
from diarylib import typetalk_client


RICH_CONSOLE = rich.console.Console()


#============================================
@dataclass
class RunSummary:
	"""
	What one bot run did, for the final report.
	"""
	countdown: str | None = None
	recaps: list = field(default_factory=list)
	created_title: str = ""
	created: bool = False
	announced: bool = False
	skipped_reason: str = ""
	error: str | None = None


#============================================
def log_step(message: str) -> None:
	"""
	Print one timestamped progress line.
	"""
	now_text = datetime.now().strftime("%H:%M:%S")
	line = f"[run_diary_bot {now_text}] {message}"
	lower = message.lower()
	style = "cyan"
	if ("failed" in lower) or ("error" in lower) or ("not set" in lower):
		style = "bold red"
	elif ("dry run" in lower) or ("skipping" in lower):
		style = "yellow"
	elif ("posted" in lower) or ("closed" in lower) or ("created" in lower):
		style = "green"
	RICH_CONSOLE.print(line, style=style, markup=False)


#============================================
def run_bot(config, github, notifier, now: datetime | None = None, log_fn=log_step) -> RunSummary:
	"""
	Run one diary cycle: recap and close open issues, then open the next one.

	Once the final milestone has passed the run does nothing at all. The
	recap step finishes every issue before the next issue is created.

	Args:
		config: BotConfig.
		github: GitHubClient-like object.
		notifier: TypetalkNotifier-like object.
		now: current time, timezone-aware; defaults to the clock.
		log_fn: callable for progress logging.

	Returns:
		RunSummary.
	"""
	if now is None:
		now = datetime.now(timezone.utc)
	summary = RunSummary()
	summary.countdown = event_calendar.countdown_text(now, config.milestones)
	if summary.countdown is None:
		summary.skipped_reason = "final milestone has passed"
		return summary

	if config.dry_run:
		log_fn("Dry run: issues will not be closed or created")
	summary.recaps = diary_recap.recap_open_issues(github, notifier, config, log_fn)

	outcome = diary_issue.open_next_issue(now, summary.countdown, github, notifier, config, log_fn)
	summary.created_title = outcome["title"]
	summary.created = outcome["created"]
	summary.announced = outcome["announced"]
	summary.error = outcome["error"]
	return summary


#============================================
def render_summary_table(summary: RunSummary) -> None:
	"""
	Render final per-issue summary table.
	"""
	table = rich.table.Table(title="Diary Bot Summary")
	table.add_column("Issue", style="bold cyan")
	table.add_column("Recap", style="bold")
	table.add_column("Closed", style="bold")
	table.add_column("Error")
	for outcome in summary.recaps:
		table.add_row(
			f"#{outcome.number} {outcome.title}",
			"[green]posted[/green]" if outcome.posted else "[red]failed[/red]",
			"[green]yes[/green]" if outcome.closed else "no",
			outcome.error or "",
		)
	new_status = "[green]created[/green]" if summary.created else "not created"
	table.add_row(
		f"new {summary.created_title}",
		"[green]announced[/green]" if summary.announced else "not announced",
		new_status,
		summary.error or "",
	)
	RICH_CONSOLE.print(table)


#============================================
def run_from_environment(
	environ=None,
	github_factory=github_client.GitHubClient,
	notifier_factory=typetalk_client.TypetalkNotifier,
	now: datetime | None = None,
) -> int:
	"""
	Load configuration, build clients and run once; return the exit status.
	"""
	if environ is None:
		environ = os.environ
	try:
		config = bot_settings.load_config(environ)
	except bot_settings.ConfigError as error:
		log_step(str(error))
		return 1

	log_step(f"Target repository: {config.repository}")
	if not config.github_token:
		log_step("GH_TOKEN is empty; using unauthenticated GitHub access")
	github = github_factory(config.repository, config.github_token, log_fn=log_step)
	notifier = notifier_factory(
		config.typetalk_topic_id,
		config.typetalk_token,
		api_base=config.typetalk_api_base,
		log_fn=log_step,
	)
	try:
		summary = run_bot(config, github, notifier, now=now)
	except RuntimeError as error:
		log_step(f"Run failed: {error}")
		return 1

	if summary.skipped_reason:
		return 0
	render_summary_table(summary)
	usage = github.api_usage_snapshot()
	log_step(f"GitHub API calls: {usage['api_call_count']}")
	return 0


#============================================
def main() -> None:
	"""
	Run the diary bot from environment variables.
	"""
	sys.exit(run_from_environment())


if __name__ == "__main__":
	main()
