from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.models.config import EnvConfig

OPENAI_BASE_URL = "https://api.openai.com/v1"


class LLMClientOpenai(LLMClientInterface):

    def _get_engine_name(self) -> str:
        return "Openai"

    def _get_default_model(self) -> str:
        return "gpt-3.5-turbo"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", default=OPENAI_BASE_URL),
            EnvConfig(env_key="API_KEY", secret=True),
        ]

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    def _build_chat_body(self, messages: list[dict], temperature: float, max_tokens: int) -> dict:
        return {
            "model": self.chat_model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _parse_chat_response(self, data: dict) -> str:
        choices = data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content")
        if content is None:
            raise ValueError(f"OpenAI chat response without message content (keys: {list(data)}).")
        return content
