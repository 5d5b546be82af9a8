from shared.clients.ClientManager import ClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager(ClientManager):
    """RAG_ENGINE: "pinecone" (default) or "qdrant".

    The index is the only durable copy of the corpus, so there is exactly one
    and no fallback to a second engine.
    """

    client_type = "rag"
    class_prefix = "RAGClient"
    default_engine = "pinecone"

    def get_client(self) -> RAGClientInterface:
        return self.client
