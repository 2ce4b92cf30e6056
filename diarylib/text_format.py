import re
from datetime import datetime
from datetime import timedelta
from datetime import timezone


JST = timezone(timedelta(hours=9))
UNCHECKED_BOX_RE = re.compile(r"^- \[ \]", re.MULTILINE)
CHECKED_BOX_RE = re.compile(r"^- \[x\]", re.MULTILINE)
UNCHECKED_EMOJI = ":large_green_square:"
CHECKED_EMOJI = ":white_check_mark:"


#============================================
def to_emoji(body: str | None) -> str:
	"""
	Replace markdown task-list checkboxes with chat emoji codes.

	Only markers at the start of a line are converted. The checked marker
	is case-sensitive, so "- [X]" is left alone.
	"""
	text = body or ""
	text = UNCHECKED_BOX_RE.sub(f"- {UNCHECKED_EMOJI}", text)
	text = CHECKED_BOX_RE.sub(f"- {CHECKED_EMOJI}", text)
	return text


#============================================
def parse_iso_datetime(text: str) -> datetime:
	"""
	Parse ISO-8601 text into a timezone-aware datetime (naive means UTC).
	"""
	value = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


#============================================
def to_jst(value: datetime) -> datetime:
	"""
	Shift a datetime into the fixed UTC+9 zone.
	"""
	if value.tzinfo is None:
		value = value.replace(tzinfo=timezone.utc)
	return value.astimezone(JST)


#============================================
def local_time(iso_text: str) -> str:
	"""
	Render an ISO timestamp as UTC+9 wall-clock HH:MM:SS.
	"""
	return to_jst(parse_iso_datetime(iso_text)).strftime("%H:%M:%S")
