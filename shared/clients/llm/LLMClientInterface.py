from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig

CHAT_ROLES = ("system", "user", "assistant")


class LLMClientInterface(ClientInterface):
    """Chat-completion engine fed with OpenAI-format messages.

    Sampling is a deployment setting (LLM_TEMPERATURE, LLM_MAX_TOKENS), callers
    only override it for special cases.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.chat_model = helper_config.get_string_val("LLM_CHAT_MODEL", default=self._get_default_model())
        self.temperature = float(helper_config.get_number_val("LLM_TEMPERATURE", default=0.7))
        self.max_tokens = helper_config.get_int_val("LLM_MAX_TOKENS", default=500, minimum=1)

    def _get_client_type(self) -> str:
        return "llm"

    ##########################################
    ############ ENGINE SPECIFIC #############
    ##########################################

    @abstractmethod
    def _get_default_model(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        pass

    @abstractmethod
    def _build_chat_body(self, messages: list[dict], temperature: float, max_tokens: int) -> dict:
        pass

    @abstractmethod
    def _parse_chat_response(self, data: dict) -> str:
        """
        Raises:
            ValueError: If the body holds no assistant reply.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict], temperature: float | None = None, max_tokens: int | None = None) -> str:
        """Run one completion and return the assistant's text.

        Args:
            messages (list[dict]): [{"role": ..., "content": ...}, ...] with roles system/user/assistant.
            temperature (float | None): Overrides LLM_TEMPERATURE.
            max_tokens (int | None): Overrides LLM_MAX_TOKENS.

        Raises:
            ClientResponseError: On a non-2xx answer.
            ValueError: On malformed messages or a response without reply.
        """
        if not messages:
            raise ValueError("Chat request needs at least one message.")
        for message in messages:
            if message.get("role") not in CHAT_ROLES or message.get("content") is None:
                raise ValueError(f"Invalid chat message with role '{message.get('role')}'.")

        body = self._build_chat_body(
            messages,
            temperature=self.temperature if temperature is None else temperature,
            max_tokens=self.max_tokens if max_tokens is None else max_tokens,
        )
        data = await self.do_request_json("POST", self._get_endpoint_chat(), json=body)
        return self._parse_chat_response(data)
