"""Answers chat messages arriving through the messaging webhook."""

import re

from shared.clients.messaging.MessagingClientInterface import MessagingClientInterface
from shared.helper.HelperConfig import HelperConfig
from services.chat.ChatService import ChatService

HISTORY_LIMIT = 5
HANDLED_EVENT_TYPES = ("message", "app_mention")

_MENTION_PATTERN = re.compile(r"<@[A-Z0-9]+>")


class MessagingEventService:
    """Turns an inbound channel message into a threaded, context-grounded reply."""

    def __init__(
        self,
        helper_config: HelperConfig,
        messaging_client: MessagingClientInterface,
        chat_service: ChatService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._messaging_client = messaging_client
        self._chat_service = chat_service

    @staticmethod
    def is_answerable(event: dict) -> bool:
        """True for user-authored message events with text. Bot output is never answered."""
        if event.get("type") not in HANDLED_EVENT_TYPES:
            return False
        if event.get("bot_id") or event.get("subtype") == "bot_message":
            return False
        # edits, deletions and joins carry a subtype and no new question
        if event.get("subtype"):
            return False
        return bool((event.get("text") or "").strip())

    async def do_handle_event(self, event: dict) -> None:
        """Answer one message event in its thread.

        Runs as a background task after the webhook was acknowledged, so every
        failure is logged here and goes no further.
        """
        channel = event.get("channel")
        thread_ts = event.get("thread_ts") or event.get("ts")
        user_text = _MENTION_PATTERN.sub("", event.get("text") or "").strip()
        if not channel or not user_text:
            self.logging.debug("Ignoring messaging event without channel or text.")
            return

        try:
            history = await self._messaging_client.do_fetch_history(channel, limit=HISTORY_LIMIT)
            # the triggering message is already part of the channel history
            if history and history[-1].role == "user" and _MENTION_PATTERN.sub("", history[-1].content).strip() == user_text:
                history = history[:-1]
            result = await self._chat_service.do_answer(user_text, history)
            await self._messaging_client.do_post_message(channel, result.reply, thread_ts=thread_ts)
        except Exception as exc:
            self.logging.error("Failed to answer message in channel %s: %s", channel, exc)
            return
        self.logging.info("Answered message in channel %s (thread %s).", channel, thread_ts, color="green")
