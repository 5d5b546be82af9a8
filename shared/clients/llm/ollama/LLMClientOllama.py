from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.models.config import EnvConfig


class LLMClientOllama(LLMClientInterface):
    """Completions from a self-hosted Ollama server, non-streaming."""

    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_default_model(self) -> str:
        return "llama3.1"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL"),
            EnvConfig(env_key="API_KEY", default="", secret=True),
        ]

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    def _build_chat_body(self, messages: list[dict], temperature: float, max_tokens: int) -> dict:
        # num_predict is ollama's reply length cap
        return {
            "model": self.chat_model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }

    def _parse_chat_response(self, data: dict) -> str:
        content = (data.get("message") or {}).get("content")
        if content is None:
            raise ValueError(f"Ollama chat response without message (keys: {list(data)}).")
        return content
