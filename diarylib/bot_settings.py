import os
import re
from dataclasses import dataclass

import yaml

from diarylib import event_calendar


DEFAULT_SETTINGS_PATH = "settings.yaml"
DEFAULT_TYPETALK_API_BASE = "https://typetalk.com/api/v1"
DEFAULT_MAX_WORKERS = 4
REQUIRED_ENV_VARS = ("REPOSITORY", "TYPETALK_TOPIC_ID", "TYPETALK_TOKEN")
LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
DRY_RUN_ENABLED = "true"


#============================================
class ConfigError(RuntimeError):
	"""
	Raised when required configuration is missing or malformed.
	"""


#============================================
@dataclass(frozen=True)
class BotConfig:
	"""
	Resolved run configuration, built once at startup.
	"""
	repository: str
	repo_owner: str
	repo_name: str
	github_token: str
	dry_run: bool
	diary_label: str
	assign_user: str
	issue_template: str
	typetalk_topic_id: str
	typetalk_token: str
	target_day_offset: int
	typetalk_api_base: str = DEFAULT_TYPETALK_API_BASE
	milestones: tuple = event_calendar.DEFAULT_MILESTONES
	max_workers: int = DEFAULT_MAX_WORKERS


#============================================
def get_repo_root() -> str:
	"""
	Return repository root based on this module location.
	"""
	module_dir = os.path.dirname(os.path.abspath(__file__))
	repo_root = os.path.dirname(module_dir)
	return repo_root


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve settings path against cwd first, then repo root.
	"""
	if os.path.isabs(path_text):
		return path_text
	cwd_candidate = os.path.abspath(path_text)
	if os.path.isfile(cwd_candidate):
		return cwd_candidate
	repo_candidate = os.path.join(get_repo_root(), path_text)
	return os.path.abspath(repo_candidate)


#============================================
def load_settings(path_text: str) -> tuple[dict, str]:
	"""
	Load YAML settings dict and return it with resolved path.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	with open(resolved_path, "r", encoding="utf-8") as handle:
		try:
			data = yaml.safe_load(handle.read())
		except yaml.YAMLError as error:
			raise ConfigError(f"Settings file is not valid YAML: {resolved_path}") from error
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise ConfigError(f"Settings file must contain a mapping: {resolved_path}")
	return data, resolved_path


#============================================
def get_nested_value(settings: dict, keys: list[str], default_value):
	"""
	Read nested mapping value by key path.
	"""
	current = settings
	for key in keys:
		if not isinstance(current, dict):
			return default_value
		if key not in current:
			return default_value
		current = current[key]
	return current


#============================================
def get_setting_str(settings: dict, keys: list[str], default_value: str) -> str:
	"""
	Read a string setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	return str(value).strip()


#============================================
def get_setting_int(settings: dict, keys: list[str], default_value: int) -> int:
	"""
	Read an integer setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	try:
		return int(value)
	except ValueError as error:
		raise ConfigError(f"Invalid integer for setting path {'.'.join(keys)}: {value}") from error


#============================================
def parse_day_offset(text: str | None) -> int:
	"""
	Parse a leading signed integer, falling back to 0.
	"""
	match = LEADING_INT_RE.match(text or "")
	if match is None:
		return 0
	return int(match.group(1))


#============================================
def parse_dry_run(text: str | None) -> bool:
	"""
	Enable dry-run mode only for the exact value "true".
	"""
	return (text or "").strip() == DRY_RUN_ENABLED


#============================================
def load_issue_template(path_text: str | None) -> str:
	"""
	Read the issue body template, or return empty text when unavailable.
	"""
	if not path_text:
		return ""
	if not os.path.isfile(path_text):
		return ""
	try:
		with open(path_text, "r", encoding="utf-8") as handle:
			return handle.read()
	except (OSError, UnicodeDecodeError):
		return ""


#============================================
def split_repository(repository: str) -> tuple[str, str]:
	"""
	Split "owner/name" into its two parts.
	"""
	owner, sep, name = repository.partition("/")
	if (not sep) or (not owner) or (not name) or ("/" in name):
		raise ConfigError(f"REPOSITORY must look like owner/name, got: {repository}")
	return owner, name


#============================================
def require_env(environ, name: str) -> str:
	"""
	Return a required environment value or raise ConfigError naming it.
	"""
	value = (environ.get(name) or "").strip()
	if not value:
		raise ConfigError(f"{name} environment variable is not set.")
	return value


#============================================
def load_config(environ=None) -> BotConfig:
	"""
	Build the run configuration from environment variables and settings.yaml.

	REPOSITORY, TYPETALK_TOPIC_ID and TYPETALK_TOKEN are required and are
	checked in that order. Everything else falls back to a default. The
	optional YAML file (DIARY_SETTINGS) may override the milestone schedule,
	the Typetalk API base URL and the recap worker count.

	Args:
		environ: mapping to read instead of os.environ.

	Returns:
		Frozen BotConfig.
	"""
	if environ is None:
		environ = os.environ
	required = {name: require_env(environ, name) for name in REQUIRED_ENV_VARS}
	repository = required["REPOSITORY"]
	repo_owner, repo_name = split_repository(repository)

	settings_path = environ.get("DIARY_SETTINGS") or DEFAULT_SETTINGS_PATH
	settings, resolved_path = load_settings(settings_path)

	milestones = event_calendar.DEFAULT_MILESTONES
	milestone_entries = get_nested_value(settings, ["milestones"], None)
	if milestone_entries is not None:
		try:
			milestones = event_calendar.load_milestones(milestone_entries)
		except RuntimeError as error:
			raise ConfigError(f"{error} ({resolved_path})") from error

	max_workers = get_setting_int(settings, ["recap", "max_workers"], DEFAULT_MAX_WORKERS)
	if max_workers < 1:
		raise ConfigError(f"recap.max_workers must be >= 1, got {max_workers}")

	config = BotConfig(
		repository=repository,
		repo_owner=repo_owner,
		repo_name=repo_name,
		github_token=(environ.get("GH_TOKEN") or "").strip(),
		dry_run=parse_dry_run(environ.get("DRY_RUN")),
		diary_label=(environ.get("ISSUE_LABEL") or "").strip(),
		assign_user=(environ.get("ASSIGN_USER") or "").strip(),
		issue_template=load_issue_template(environ.get("ISSUE_TEMPLATE")),
		typetalk_topic_id=required["TYPETALK_TOPIC_ID"],
		typetalk_token=required["TYPETALK_TOKEN"],
		target_day_offset=parse_day_offset(environ.get("TARGET_DAY_OFFSET")),
		typetalk_api_base=get_setting_str(
			settings, ["typetalk", "api_base"], DEFAULT_TYPETALK_API_BASE
		).rstrip("/"),
		milestones=milestones,
		max_workers=max_workers,
	)
	return config
