import math
from dataclasses import dataclass
from datetime import datetime

from diarylib import text_format


#============================================
@dataclass(frozen=True)
class Milestone:
	"""
	One named program date.
	"""
	name: str
	date: datetime


#============================================
def _jst_midnight(year: int, month: int, day: int) -> datetime:
	return datetime(year, month, day, tzinfo=text_format.JST)


DEFAULT_MILESTONES: tuple[Milestone, ...] = (
	Milestone("第1回イベント", _jst_midnight(2022, 6, 11)),
	Milestone("第2回イベント", _jst_midnight(2022, 7, 9)),
	Milestone("第3回イベント", _jst_midnight(2022, 8, 24)),
	Milestone("第4回イベント", _jst_midnight(2022, 10, 1)),
	Milestone("第5回イベント", _jst_midnight(2022, 11, 11)),
	Milestone("第6回イベント", _jst_midnight(2023, 1, 27)),
	Milestone("成果発表会", _jst_midnight(2023, 3, 4)),
	Milestone("2022年度終了", _jst_midnight(2023, 4, 1)),
)
SECONDS_PER_DAY = 24 * 60 * 60


#============================================
def parse_milestone_date(value) -> datetime:
	"""
	Normalize a settings date value to an aware datetime.

	Naive values (including plain YAML dates) are read as UTC+9 midnight
	or wall-clock time.
	"""
	if isinstance(value, datetime):
		parsed = value
	elif hasattr(value, "year") and hasattr(value, "month") and hasattr(value, "day"):
		parsed = datetime(value.year, value.month, value.day)
	elif isinstance(value, str):
		parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
	else:
		raise RuntimeError(f"Unsupported milestone date value: {value!r}")
	if parsed.tzinfo is None:
		return parsed.replace(tzinfo=text_format.JST)
	return parsed


#============================================
def load_milestones(entries) -> tuple[Milestone, ...]:
	"""
	Build a milestone schedule from settings entries.

	Args:
		entries: list of mappings with "name" and "date" keys.

	Returns:
		Milestones in the given order. The list must already be ascending;
		no sorting is applied.
	"""
	if not isinstance(entries, list):
		raise RuntimeError("Invalid settings: milestones must be a list.")
	milestones = []
	for index, entry in enumerate(entries):
		if not isinstance(entry, dict):
			raise RuntimeError(f"Invalid settings: milestones[{index}] must be a mapping.")
		name = str(entry.get("name", "") or "").strip()
		if not name:
			raise RuntimeError(f"Invalid settings: milestones[{index}] has no name.")
		if entry.get("date") is None:
			raise RuntimeError(f"Invalid settings: milestones[{index}] has no date.")
		try:
			date_value = parse_milestone_date(entry["date"])
		except ValueError as error:
			raise RuntimeError(
				f"Invalid settings: milestones[{index}] date {entry['date']!r}"
			) from error
		milestones.append(Milestone(name, date_value))
	return tuple(milestones)


#============================================
def next_milestone(now: datetime, milestones=DEFAULT_MILESTONES) -> Milestone | None:
	"""
	Return the first milestone strictly after now, or None once all have passed.
	"""
	for milestone in milestones:
		if now < milestone.date:
			return milestone
	return None


#============================================
def remaining_days(now: datetime, milestone: Milestone) -> int:
	"""
	Whole days left until a milestone, rounding partial days up.
	"""
	seconds = (milestone.date - now).total_seconds()
	return math.ceil(seconds / SECONDS_PER_DAY)


#============================================
def countdown_text(now: datetime, milestones=DEFAULT_MILESTONES) -> str | None:
	"""
	Build the countdown line toward the next milestone.
	"""
	milestone = next_milestone(now, milestones)
	if milestone is None:
		return None
	return f"{milestone.name}まであと{remaining_days(now, milestone)}日"
