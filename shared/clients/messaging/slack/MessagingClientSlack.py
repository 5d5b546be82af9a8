from shared.clients.messaging.MessagingClientInterface import MessagingClientInterface
from shared.helper.signature import verify_signature
from shared.models.chat import Message
from shared.models.config import EnvConfig


class SlackApiError(Exception):
    """Slack reports API failures as HTTP 200 with {"ok": false, "error": "<code>"}."""

    def __init__(self, method: str, error: str):
        self.method = method
        self.error = error
        super().__init__(f"Slack API method {method} failed: {error}")


class MessagingClientSlack(MessagingClientInterface):
    """Slack Web API with a bot token (xoxb-...). Inbound events are checked against SIGNING_SECRET."""

    def _get_engine_name(self) -> str:
        return "Slack"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", default="https://slack.com/api"),
            EnvConfig(env_key="BOT_TOKEN", secret=True),
            EnvConfig(env_key="SIGNING_SECRET", secret=True),
        ]

    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self.get_config('BOT_TOKEN')}"}

    def _get_endpoint_healthcheck(self) -> str:
        return "/auth.test"

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def verify_request(self, headers: dict, raw_body: bytes) -> None:
        verify_signature(
            signing_secret=self.get_config("SIGNING_SECRET").encode("utf-8"),
            timestamp=headers.get("x-slack-request-timestamp"),
            signature=headers.get("x-slack-signature"),
            raw_body=raw_body,
        )

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _call(self, http_method: str, api_method: str, **kwargs) -> dict:
        data = await self.do_request_json(http_method, f"/{api_method}", **kwargs)
        if not data.get("ok"):
            raise SlackApiError(api_method, data.get("error", "unknown_error"))
        return data

    async def do_fetch_history(self, channel: str, limit: int = 5) -> list[Message]:
        data = await self._call("GET", "conversations.history", params={"channel": channel, "limit": limit})
        # newest first on the wire
        return [
            Message(role="bot" if entry.get("bot_id") else "user", content=entry.get("text") or "")
            for entry in reversed(data.get("messages") or [])
        ]

    async def do_post_message(self, channel: str, text: str, thread_ts: str | None = None) -> None:
        body = {"channel": channel, "text": text}
        if thread_ts:
            body["thread_ts"] = thread_ts
        await self._call(
            "POST",
            "chat.postMessage",
            json=body,
            additional_headers={"Content-Type": "application/json; charset=utf-8"},
        )
