import threading
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone

import requests

CLOSED_STATUS = 200
CREATED_STATUS = 201


#============================================
class GitHubCallError(RuntimeError):
	"""
	Raised when a read call against the GitHub API fails.
	"""

	def __init__(self, message: str, status: int | None = None):
		super().__init__(message)
		self.status = status


#============================================
class RateLimitError(GitHubCallError):
	"""
	Raised when GitHub API rate limits block further requests.
	"""


#============================================
@dataclass(frozen=True)
class DiaryIssue:
	number: int
	title: str
	body: str
	labels: tuple
	state: str


#============================================
@dataclass(frozen=True)
class IssueComment:
	author: str | None
	body: str
	created_at: str


#============================================
@dataclass(frozen=True)
class CallResult:
	"""
	Outcome of one mutating API call.
	"""
	ok: bool
	status: int | None = None
	detail: str = ""
	value: object = None


#============================================
def format_timestamp(value) -> str:
	"""
	Render a PyGithub timestamp as ISO-8601 UTC text.
	"""
	if isinstance(value, datetime):
		if value.tzinfo is None:
			value = value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc).isoformat()
	return str(value or "")


#============================================
class GitHubClient:
	"""
	Thin PyGithub wrapper for the diary issue workflow on one repository.
	"""

	def __init__(self, repo_full_name: str, token: str = "", log_fn=None):
		self.repo_full_name = repo_full_name
		self.log_fn = log_fn
		self._api_call_count = 0
		self._api_calls_by_context: dict[str, int] = {}
		self._counter_lock = threading.Lock()
		self._repo = None
		self._issue_objects: dict[int, object] = {}
		try:
			from github import Github
			from github.GithubException import GithubException
		except ModuleNotFoundError as error:
			raise RuntimeError(
				"Missing dependency: PyGithub. Install it with pip install PyGithub."
			) from error
		self._github_exception_class = GithubException
		self.client = self._build_github_client(Github, token)

	#============================================
	def _build_github_client(self, github_class, token: str):
		"""
		Create Github client with retry disabled when supported.
		"""
		if token:
			try:
				return github_class(token, retry=None)
			except TypeError:
				return github_class(token)
		try:
			return github_class(retry=None)
		except TypeError:
			return github_class()

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def record_api_call(self, context: str) -> None:
		"""
		Track one outbound GitHub API call.
		"""
		with self._counter_lock:
			self._api_call_count += 1
			if context not in self._api_calls_by_context:
				self._api_calls_by_context[context] = 0
			self._api_calls_by_context[context] += 1

	#============================================
	def api_usage_snapshot(self) -> dict:
		"""
		Return API call counters for reporting.
		"""
		with self._counter_lock:
			return {
				"api_call_count": self._api_call_count,
				"api_calls_by_context": dict(self._api_calls_by_context),
			}

	#============================================
	def parse_rate_limit_reset(self, reset_value) -> datetime:
		"""
		Normalize PyGithub reset values to timezone-aware UTC datetime.
		"""
		if isinstance(reset_value, datetime):
			if reset_value.tzinfo is None:
				return reset_value.replace(tzinfo=timezone.utc)
			return reset_value.astimezone(timezone.utc)
		if isinstance(reset_value, (int, float)):
			return datetime.fromtimestamp(float(reset_value), tz=timezone.utc)
		if isinstance(reset_value, str):
			return datetime.fromisoformat(reset_value.replace("Z", "+00:00"))
		raise RuntimeError(f"Unsupported rate-limit reset value: {reset_value!r}")

	#============================================
	def get_core_rate_limit_snapshot(self) -> tuple[int, datetime]:
		"""
		Read core rate-limit remaining/reset across PyGithub versions.
		"""
		self.record_api_call("GET /rate_limit")
		overview = self.client.get_rate_limit()
		rate_limit = getattr(overview, "core", None)
		if rate_limit is None:
			resources = getattr(overview, "resources", None)
			if isinstance(resources, dict):
				rate_limit = resources.get("core")
			elif resources is not None:
				rate_limit = getattr(resources, "core", None)
		if rate_limit is None:
			raise RuntimeError("Rate limit data does not expose core resource fields.")
		remaining = int(getattr(rate_limit, "remaining"))
		reset_time = self.parse_rate_limit_reset(getattr(rate_limit, "reset"))
		return remaining, reset_time

	#============================================
	def raise_from_github_error(self, error: Exception, context: str) -> None:
		"""
		Raise a human-readable rate-limit error or a GitHubCallError.
		"""
		status = getattr(error, "status", None)
		if status != 403:
			raise GitHubCallError(f"GitHub API call failed while {context}: {error}", status=status) from error
		reset_text = "unknown"
		remaining_text = "unknown"
		try:
			remaining, reset_time = self.get_core_rate_limit_snapshot()
			reset_text = reset_time.isoformat()
			remaining_text = str(remaining)
		except Exception:
			pass
		raise RateLimitError(
			"GitHub API rate limit exceeded while "
			+ f"{context}; remaining={remaining_text}; reset_at={reset_text}. "
			+ "Set GH_TOKEN for higher limits.",
			status=status,
		) from error

	#============================================
	def call_api(self, context: str, call_fn):
		"""
		Run one read API call, translating PyGithub and transport errors.
		"""
		try:
			self.record_api_call(context)
			return call_fn()
		except self._github_exception_class as error:
			self.raise_from_github_error(error, context)
		except requests.RequestException as error:
			raise GitHubCallError(f"GitHub request failed while {context}: {error}") from error

	#============================================
	def call_for_result(self, context: str, success_status: int, call_fn) -> CallResult:
		"""
		Run one mutating API call and wrap its outcome in a CallResult.
		"""
		try:
			self.record_api_call(context)
			value = call_fn()
		except self._github_exception_class as error:
			status = getattr(error, "status", None)
			return CallResult(ok=False, status=status, detail=f"{context}: {error}")
		except requests.RequestException as error:
			return CallResult(ok=False, status=None, detail=f"{context}: {error}")
		return CallResult(ok=True, status=success_status, value=value)

	#============================================
	def get_repo(self):
		"""
		Get the target repository object, fetched once.
		"""
		if self._repo is None:
			self._repo = self.call_api(
				f"GET /repos/{self.repo_full_name}",
				lambda: self.client.get_repo(self.repo_full_name),
			)
		return self._repo

	#============================================
	def list_open_issues(self, label: str = "") -> list[DiaryIssue]:
		"""
		List every open issue carrying label, across all pages.

		Pull requests share the issues endpoint and are skipped.
		"""
		repo_obj = self.get_repo()
		kwargs = {"state": "open"}
		if label:
			kwargs["labels"] = [label]
		issue_objects = self.call_api(
			f"GET /repos/{self.repo_full_name}/issues",
			lambda: [
				issue_obj
				for issue_obj in repo_obj.get_issues(**kwargs)
				if getattr(issue_obj, "pull_request", None) is None
			],
		)
		for issue_obj in issue_objects:
			self._issue_objects[int(issue_obj.number)] = issue_obj
		return [self._to_diary_issue(issue_obj) for issue_obj in issue_objects]

	#============================================
	def list_comments(self, issue_number: int) -> list[IssueComment]:
		"""
		List every comment of one issue in API order.
		"""
		context = f"GET /repos/{self.repo_full_name}/issues/{issue_number}/comments"
		issue_obj = self._get_issue(issue_number)
		return self.call_api(
			context,
			lambda: [self._to_issue_comment(comment_obj) for comment_obj in issue_obj.get_comments()],
		)

	#============================================
	def close_issue(self, issue_number: int) -> CallResult:
		"""
		Close one issue.
		"""
		context = f"PATCH /repos/{self.repo_full_name}/issues/{issue_number}"
		try:
			issue_obj = self._get_issue(issue_number)
		except GitHubCallError as error:
			return CallResult(ok=False, status=error.status, detail=str(error))
		return self.call_for_result(
			context,
			CLOSED_STATUS,
			lambda: issue_obj.edit(state="closed"),
		)

	#============================================
	def create_issue(self, title: str, body: str, labels: list[str], assignees: list[str]) -> CallResult:
		"""
		Open a new issue; the CallResult value is the issue number.
		"""
		context = f"POST /repos/{self.repo_full_name}/issues"
		try:
			repo_obj = self.get_repo()
		except GitHubCallError as error:
			return CallResult(ok=False, status=error.status, detail=str(error))
		return self.call_for_result(
			context,
			CREATED_STATUS,
			lambda: repo_obj.create_issue(
				title=title,
				body=body,
				labels=labels,
				assignees=assignees,
			).number,
		)

	#============================================
	def _get_issue(self, issue_number: int):
		# reuse objects from list_open_issues
		cached = self._issue_objects.get(issue_number)
		if cached is not None:
			return cached
		repo_obj = self.get_repo()
		return self.call_api(
			f"GET /repos/{self.repo_full_name}/issues/{issue_number}",
			lambda: repo_obj.get_issue(issue_number),
		)

	#============================================
	def _to_diary_issue(self, issue_obj) -> DiaryIssue:
		labels = tuple(getattr(label, "name", str(label)) for label in (issue_obj.labels or []))
		return DiaryIssue(
			number=int(issue_obj.number),
			title=issue_obj.title or "",
			body=issue_obj.body or "",
			labels=labels,
			state=issue_obj.state or "",
		)

	#============================================
	def _to_issue_comment(self, comment_obj) -> IssueComment:
		user = getattr(comment_obj, "user", None)
		author = getattr(user, "login", None) if user is not None else None
		return IssueComment(
			author=author,
			body=comment_obj.body or "",
			created_at=format_timestamp(comment_obj.created_at),
		)
