from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.models.config import EnvConfig

OPENAI_BASE_URL = "https://api.openai.com/v1"


class EmbedClientOpenai(EmbedClientInterface):
    """Embeddings via the OpenAI (or any OpenAI-compatible) /embeddings endpoint."""

    def _get_engine_name(self) -> str:
        return "Openai"

    def _get_default_model(self) -> str:
        return "text-embedding-3-large"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", default=OPENAI_BASE_URL),
            EnvConfig(env_key="API_KEY", secret=True),
        ]

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_embed(self) -> str:
        return "/embeddings"

    def _build_embed_body(self, texts: list[str]) -> dict:
        return {"model": self.embed_model, "input": texts, "encoding_format": "float"}

    def _parse_embed_response(self, data: dict) -> list[list[float]]:
        # entries carry their input position, the API does not promise order
        entries = sorted(data.get("data") or [], key=lambda entry: entry.get("index", 0))
        if not entries:
            raise ValueError(f"OpenAI embedding response without data (keys: {list(data)}).")
        vectors = [entry.get("embedding") or [] for entry in entries]
        if not all(vectors):
            raise ValueError("OpenAI embedding response contains an empty vector.")
        return vectors
