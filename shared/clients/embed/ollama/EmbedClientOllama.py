from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.models.config import EnvConfig


class EmbedClientOllama(EmbedClientInterface):
    """Embeddings from a self-hosted Ollama server. API_KEY is only needed behind an auth proxy."""

    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_default_model(self) -> str:
        return "nomic-embed-text"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL"),
            EnvConfig(env_key="API_KEY", default="", secret=True),
        ]

    def _get_endpoint_healthcheck(self) -> str:
        # ollama answers "Ollama is running" on its root
        return ""

    def _get_endpoint_embed(self) -> str:
        return "/api/embed"

    def _build_embed_body(self, texts: list[str]) -> dict:
        return {"model": self.embed_model, "input": texts}

    def _parse_embed_response(self, data: dict) -> list[list[float]]:
        vectors = data.get("embeddings") or []
        if not vectors or not all(vectors):
            raise ValueError(f"Ollama embedding response without vectors (keys: {list(data)}).")
        return vectors
