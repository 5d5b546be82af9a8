from shared.clients.ClientManager import ClientManager
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface


class EmbedClientManager(ClientManager):
    """EMBED_ENGINE: "openai" (default) or "ollama"."""

    client_type = "embed"
    class_prefix = "EmbedClient"
    default_engine = "openai"

    def get_client(self) -> EmbedClientInterface:
        return self.client
