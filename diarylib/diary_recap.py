from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from diarylib import text_format


#============================================
@dataclass(frozen=True)
class IssueRecapOutcome:
	"""
	What happened to one diary issue during the recap step.
	"""
	number: int
	title: str
	posted: bool = False
	closed: bool = False
	error: str | None = None


#============================================
def format_comment_line(comment, repo_owner: str) -> str:
	"""
	Render one comment as "HH:MM:SS (@author) body".

	The author is shown only when it differs from the repository owner.
	"""
	author_text = ""
	if comment.author and comment.author != repo_owner:
		author_text = f" (@{comment.author})"
	return f"{text_format.local_time(comment.created_at)}{author_text} {comment.body}"


#============================================
def build_recap_message(issue, comments, repo_owner: str) -> str:
	"""
	Compose the chat recap for one diary issue.
	"""
	comment_lines = "\n".join(format_comment_line(comment, repo_owner) for comment in comments)
	issue_body = text_format.to_emoji(issue.body)
	return f"{issue.title}振り返り\n{issue_body}\nコメント:\n{comment_lines}\n"


#============================================
def recap_issue(issue, github, notifier, config, log_fn=None) -> IssueRecapOutcome:
	"""
	Post one issue's recap to chat and close the issue.

	Failures stay inside this issue: tracker and chat errors are logged
	and reported in the outcome instead of being raised.

	Args:
		issue: DiaryIssue to recap.
		github: GitHubClient-like object.
		notifier: TypetalkNotifier-like object.
		config: BotConfig.
		log_fn: optional callable for progress logging.

	Returns:
		IssueRecapOutcome for the issue.
	"""
	def log(message: str) -> None:
		if log_fn is not None:
			log_fn(message)

	log(f"Recapping issue #{issue.number}: {issue.title}")
	try:
		comments = github.list_comments(issue.number)
		message = build_recap_message(issue, comments, config.repo_owner)
		notifier.post(message)
	except RuntimeError as error:
		log(f"Recap failed for issue #{issue.number}: {error}")
		return IssueRecapOutcome(issue.number, issue.title, error=str(error))
	log(f"Posted recap for issue #{issue.number} ({len(comments)} comments)")

	if config.dry_run:
		log(f"Dry run: skipping close of issue #{issue.number}")
		return IssueRecapOutcome(issue.number, issue.title, posted=True)

	result = github.close_issue(issue.number)
	if not result.ok:
		log(f"Issue close failed for #{issue.number}: status={result.status} {result.detail}")
		return IssueRecapOutcome(
			issue.number,
			issue.title,
			posted=True,
			error=f"close failed (status={result.status})",
		)
	log(f"Closed issue #{issue.number}")
	return IssueRecapOutcome(issue.number, issue.title, posted=True, closed=True)


#============================================
def recap_open_issues(github, notifier, config, log_fn=None) -> list[IssueRecapOutcome]:
	"""
	Recap and close every open diary issue, waiting for all of them.

	Listing failures propagate. Per-issue work runs in a thread pool and
	outcomes come back in listing order.
	"""
	issues = github.list_open_issues(config.diary_label)
	if log_fn is not None:
		log_fn(f"Found {len(issues)} open diary issues in {config.repository}")
	if not issues:
		return []
	worker_count = min(config.max_workers, len(issues))
	with ThreadPoolExecutor(max_workers=worker_count) as executor:
		futures = [
			executor.submit(recap_issue, issue, github, notifier, config, log_fn)
			for issue in issues
		]
		outcomes = [future.result() for future in futures]
	return outcomes
