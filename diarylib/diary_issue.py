from datetime import datetime
from datetime import timedelta

from diarylib import text_format


#============================================
def compute_issue_title(now: datetime, day_offset: int) -> str:
	"""
	Return the UTC+9 calendar date of now plus day_offset as YYYY-MM-DD.
	"""
	target_day = text_format.to_jst(now) + timedelta(days=day_offset)
	return target_day.strftime("%Y-%m-%d")


#============================================
def compose_issue_body(countdown: str, template: str) -> str:
	return f"{countdown}\n{template}"


#============================================
def build_announcement(title: str, body: str) -> str:
	return f"{title}の目標：\n{text_format.to_emoji(body)}"


#============================================
def open_next_issue(now: datetime, countdown: str, github, notifier, config, log_fn=None) -> dict:
	"""
	Create the next diary issue and announce it in chat.

	In dry-run mode no issue is created but the announcement is still
	posted. A failed create skips the announcement. A failed announcement
	is logged, not raised.

	Returns:
		dict with title, created, announced and error keys.
	"""
	def log(message: str) -> None:
		if log_fn is not None:
			log_fn(message)

	title = compute_issue_title(now, config.target_day_offset)
	body = compose_issue_body(countdown, config.issue_template)
	outcome = {"title": title, "created": False, "announced": False, "error": None}

	if config.dry_run:
		log(f"Dry run: skipping creation of issue {title}")
	else:
		labels = [config.diary_label] if config.diary_label else []
		assignees = [config.assign_user] if config.assign_user else []
		result = github.create_issue(title, body, labels, assignees)
		if not result.ok:
			log(f"Issue create failed for {title}: status={result.status} {result.detail}")
			outcome["error"] = f"create failed (status={result.status})"
			return outcome
		outcome["created"] = True
		log(f"Created issue #{result.value}: {title}")

	try:
		notifier.post(build_announcement(title, body))
	except RuntimeError as error:
		log(f"Announcement failed for {title}: {error}")
		outcome["error"] = str(error)
		return outcome
	outcome["announced"] = True
	log(f"Posted announcement for {title}")
	return outcome
