import threading

from diarylib import bot_settings
from diarylib import diary_recap
from diarylib import github_client
from diarylib import typetalk_client


#============================================
class FakeGitHub:
	"""
	In-memory issue tracker with per-issue failure switches.
	"""

	def __init__(self, issues, comments=None, close_failures=(), comment_failures=()):
		self.issues = issues
		self.comments = comments or {}
		self.close_failures = set(close_failures)
		self.comment_failures = set(comment_failures)
		self.closed = []
		self.lock = threading.Lock()

	def list_open_issues(self, label):
		return list(self.issues)

	def list_comments(self, number):
		if number in self.comment_failures:
			raise github_client.GitHubCallError("comments unavailable", status=502)
		return self.comments.get(number, [])

	def close_issue(self, number):
		if number in self.close_failures:
			return github_client.CallResult(ok=False, status=500, detail="boom")
		with self.lock:
			self.closed.append(number)
		return github_client.CallResult(ok=True, status=200)


#============================================
class FakeNotifier:
	"""
	Collect posted messages; optionally fail on matching text.
	"""

	def __init__(self, fail_when=None):
		self.messages = []
		self.fail_when = fail_when
		self.lock = threading.Lock()

	def post(self, message):
		if self.fail_when and self.fail_when in message:
			raise typetalk_client.ChatPostError("HTTP 500", status=500)
		with self.lock:
			self.messages.append(message)


#============================================
def make_config(**overrides) -> bot_settings.BotConfig:
	"""
	Build a BotConfig for recap tests.
	"""
	values = {
		"repository": "alice/diary",
		"repo_owner": "alice",
		"repo_name": "diary",
		"github_token": "",
		"dry_run": False,
		"diary_label": "diary",
		"assign_user": "",
		"issue_template": "",
		"typetalk_topic_id": "1",
		"typetalk_token": "t",
		"target_day_offset": 0,
	}
	values.update(overrides)
	return bot_settings.BotConfig(**values)


#============================================
def make_issue(number: int, title: str, body: str = "") -> github_client.DiaryIssue:
	return github_client.DiaryIssue(number, title, body, ("diary",), "open")


#============================================
def test_build_recap_message_format() -> None:
	"""
	Recap lists title, emoji body and localized comments; owner is not tagged.
	"""
	issue = make_issue(1, "2022-06-10", "- [ ] 論文\n- [x] 実装")
	comments = [
		github_client.IssueComment("alice", "started", "2022-06-10T00:00:00Z"),
		github_client.IssueComment("bob", "nice", "2022-06-10T23:30:00Z"),
	]
	message = diary_recap.build_recap_message(issue, comments, "alice")
	assert message == (
		"2022-06-10振り返り\n"
		"- :large_green_square: 論文\n"
		"- :white_check_mark: 実装\n"
		"コメント:\n"
		"09:00:00 started\n"
		"08:30:00 (@bob) nice\n"
	)


#============================================
def test_format_comment_line_without_author() -> None:
	"""
	Comments from deleted users carry no author annotation.
	"""
	comment = github_client.IssueComment(None, "ghost", "2022-06-10T01:02:03Z")
	assert diary_recap.format_comment_line(comment, "alice") == "10:02:03 ghost"


#============================================
def test_recap_issue_posts_then_closes() -> None:
	"""
	A healthy issue is posted and closed.
	"""
	github = FakeGitHub([make_issue(1, "a")])
	notifier = FakeNotifier()
	outcome = diary_recap.recap_issue(github.issues[0], github, notifier, make_config())
	assert outcome.posted is True
	assert outcome.closed is True
	assert outcome.error is None
	assert github.closed == [1]
	assert len(notifier.messages) == 1


#============================================
def test_recap_issue_dry_run_posts_without_closing() -> None:
	"""
	Dry-run still posts the same recap but never closes.
	"""
	issue = make_issue(1, "a", "- [ ] x")
	live_notifier = FakeNotifier()
	diary_recap.recap_issue(issue, FakeGitHub([issue]), live_notifier, make_config())
	github = FakeGitHub([issue])
	dry_notifier = FakeNotifier()
	outcome = diary_recap.recap_issue(issue, github, dry_notifier, make_config(dry_run=True))
	assert outcome.posted is True
	assert outcome.closed is False
	assert github.closed == []
	assert dry_notifier.messages == live_notifier.messages


#============================================
def test_recap_issue_close_failure_is_reported() -> None:
	"""
	A failed close is reported in the outcome without raising.
	"""
	github = FakeGitHub([make_issue(1, "a")], close_failures=[1])
	outcome = diary_recap.recap_issue(github.issues[0], github, FakeNotifier(), make_config())
	assert outcome.posted is True
	assert outcome.closed is False
	assert "500" in outcome.error


#============================================
def test_recap_issue_chat_failure_skips_close() -> None:
	"""
	If the recap cannot be posted the issue stays open.
	"""
	github = FakeGitHub([make_issue(1, "a")])
	outcome = diary_recap.recap_issue(github.issues[0], github, FakeNotifier(fail_when="a振り返り"), make_config())
	assert outcome.posted is False
	assert outcome.error
	assert github.closed == []


#============================================
def test_recap_open_issues_isolates_failures() -> None:
	"""
	One broken issue must not stop the others.
	"""
	issues = [make_issue(1, "one"), make_issue(2, "two"), make_issue(3, "three")]
	github = FakeGitHub(issues, comment_failures=[2])
	notifier = FakeNotifier()
	outcomes = diary_recap.recap_open_issues(github, notifier, make_config(max_workers=3))
	assert [outcome.number for outcome in outcomes] == [1, 2, 3]
	assert outcomes[1].error is not None
	assert sorted(github.closed) == [1, 3]
	assert len(notifier.messages) == 2


#============================================
def test_recap_open_issues_empty() -> None:
	"""
	No open issues means no posts.
	"""
	notifier = FakeNotifier()
	assert diary_recap.recap_open_issues(FakeGitHub([]), notifier, make_config()) == []
	assert notifier.messages == []
