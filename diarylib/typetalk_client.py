import requests

from diarylib import bot_settings


DEFAULT_TIMEOUT_SECONDS = 30
TOKEN_HEADER = "X-TYPETALK-TOKEN"


#============================================
class ChatPostError(RuntimeError):
	"""
	Raised when a Typetalk post fails or returns a non-2xx status.
	"""

	def __init__(self, message: str, status: int | None = None):
		super().__init__(message)
		self.status = status


#============================================
class TypetalkNotifier:
	"""
	Posts plain-text messages to one Typetalk topic.
	"""

	def __init__(
		self,
		topic_id: str,
		token: str,
		api_base: str = bot_settings.DEFAULT_TYPETALK_API_BASE,
		session=None,
		timeout: int = DEFAULT_TIMEOUT_SECONDS,
		log_fn=None,
	):
		self.topic_id = topic_id
		self.token = token
		self.api_base = api_base.rstrip("/")
		self.session = session if session is not None else requests.Session()
		self.timeout = timeout
		self.log_fn = log_fn

	#============================================
	def log(self, message: str) -> None:
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def topic_url(self) -> str:
		return f"{self.api_base}/topics/{self.topic_id}"

	#============================================
	def post(self, message: str) -> requests.Response:
		"""
		Send one message. No retry.

		Raises:
			ChatPostError: on connection errors or a non-2xx response.
		"""
		headers = {
			TOKEN_HEADER: self.token,
			"Content-Type": "application/json",
		}
		try:
			response = self.session.post(
				self.topic_url(),
				headers=headers,
				json={"message": message},
				timeout=self.timeout,
			)
		except requests.RequestException as error:
			raise ChatPostError(f"Typetalk post to topic {self.topic_id} failed: {error}") from error
		if not (200 <= response.status_code < 300):
			raise ChatPostError(
				f"Typetalk post to topic {self.topic_id} returned HTTP {response.status_code}",
				status=response.status_code,
			)
		self.log(f"Posted {len(message)} chars to Typetalk topic {self.topic_id}")
		return response


#============================================
def post_message(message: str, topic_id: str, token: str, **kwargs) -> requests.Response:
	"""
	Post one message without keeping a notifier around.
	"""
	notifier = TypetalkNotifier(topic_id, token, **kwargs)
	return notifier.post(message)
