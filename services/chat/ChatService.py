"""Chat orchestration: retrieval → prompt assembly → completion."""

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions.errors import ChatError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatResult, Message
from services.retrieval.RetrievalService import RetrievalService

SYSTEM_PROMPT = (
    "You are a helpful assistant. Use the following context to inform your answers, "
    "but do not mention the context explicitly unless the user asks about it.\n\n"
    "Context:\n{context}"
)


class ChatService:
    """Answers a user turn grounded on retrieved chunks."""

    def __init__(
        self,
        helper_config: HelperConfig,
        llm_client: LLMClientInterface,
        retrieval_service: RetrievalService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._llm_client = llm_client
        self._retrieval_service = retrieval_service

    async def do_answer(self, user_text: str, history: list[Message] | None = None) -> ChatResult:
        """Answer ``user_text`` given the prior turns of the conversation.

        The prompt is one system message carrying the retrieved context, then
        the history (roles normalised to user/assistant), then the new user turn.
        An empty context is valid; the model then answers without grounding.

        Args:
            user_text (str): The new user message.
            history (list[Message] | None): Earlier turns, oldest first.

        Returns:
            ChatResult: The reply and the references used, unchanged from retrieval.

        Raises:
            ValidationError: On an empty message.
            ChatError: If the completion engine fails. No partial reply is returned.
        """
        if not user_text or not user_text.strip():
            raise ValidationError("Message must not be empty.")

        references = await self._retrieval_service.do_retrieve_for_chat(user_text)
        context = self._retrieval_service.build_context(references)
        messages = self.build_messages(user_text, history or [], context)

        try:
            reply = await self._llm_client.do_chat(messages)
        except Exception as exc:
            self.logging.error("Completion failed: %s", exc)
            raise ChatError(f"Completion failed: {exc}") from exc

        self.logging.info("Answered chat turn with %d reference(s).", len(references))
        return ChatResult(reply=reply, references=references)

    @staticmethod
    def build_messages(user_text: str, history: list[Message], context: str) -> list[dict]:
        messages = [{"role": "system", "content": SYSTEM_PROMPT.format(context=context)}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in history)
        messages.append({"role": "user", "content": user_text})
        return messages
