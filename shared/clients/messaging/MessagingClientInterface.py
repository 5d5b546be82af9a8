from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.models.chat import Message


class MessagingClientInterface(ClientInterface):
    """Messaging platform the bot answers on (history lookup, threaded replies, request signing)."""

    def _get_client_type(self) -> str:
        return "messaging"

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @abstractmethod
    def verify_request(self, headers: dict, raw_body: bytes) -> None:
        """Verify that an inbound webhook request was sent by the platform.

        Args:
            headers (dict): Request headers (lower-case keys).
            raw_body (bytes): The request body exactly as received.

        Raises:
            SignatureError: If verification fails.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_fetch_history(self, channel: str, limit: int = 5) -> list[Message]:
        """Return the latest ``limit`` messages of a channel, oldest first.

        Messages sent by bots have role "bot" (stored as "assistant"), all others "user".
        """
        pass

    @abstractmethod
    async def do_post_message(self, channel: str, text: str, thread_ts: str | None = None) -> None:
        """Post a message, optionally as a reply inside a thread."""
        pass
