"""Retrieval and context assembly: query text → nearest chunks → references → grounding text."""

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.exceptions.errors import EmbeddingError, SyncError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import Reference
from services.embedding.EmbeddingService import EmbeddingService

SEARCH_TOP_K = 3  # interactive search
CHAT_TOP_K = 5    # chat grounding
UNKNOWN_SOURCE = "Unknown"


class RetrievalService:
    """Embeds a query, searches the vector index and maps matches to references."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embedding_service: EmbeddingService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embedding_service = embedding_service

    ##########################################
    ################ CORE ####################
    ##########################################

    async def do_retrieve(self, query_text: str, top_k: int = SEARCH_TOP_K) -> list[Reference]:
        """Return the top_k chunks closest to the query, in the index's own order.

        Scores are passed through untouched; they rank matches and are not probabilities.

        Raises:
            ValidationError: On an empty query.
            EmbeddingError: If the query cannot be embedded.
            SyncError: If the vector search fails.
        """
        if not query_text or not query_text.strip():
            raise ValidationError("Query must not be empty.")

        vector = await self._embedding_service.do_embed_text(query_text)
        try:
            matches = await self._rag_client.do_query(vector, top_k=top_k, include_metadata=True)
        except Exception as exc:
            raise SyncError(f"Vector search failed: {exc}") from exc

        references = [self._match_to_reference(match) for match in matches]
        self.logging.info("Retrieved %d reference(s) for query %r (top_k=%d).", len(references), query_text[:80], top_k)
        return references

    async def do_retrieve_for_chat(self, query_text: str) -> list[Reference]:
        """Retrieve grounding references for a chat turn.

        A failed search must not abort the chat turn, so any retrieval failure
        is logged and treated as "no context".
        """
        try:
            return await self.do_retrieve(query_text, top_k=CHAT_TOP_K)
        except (EmbeddingError, SyncError) as exc:
            self.logging.warning("Retrieval failed, answering without context: %s", exc)
            return []

    @staticmethod
    def build_context(references: list[Reference]) -> str:
        """Join reference texts with a blank line, in the order received. Empty list → ""."""
        return "\n\n".join(reference.text for reference in references)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    @staticmethod
    def _match_to_reference(match: QueryMatch) -> Reference:
        metadata = match.metadata
        source = metadata.get("source") or metadata.get("chatbotName") or UNKNOWN_SOURCE
        return Reference(
            text=str(metadata.get("text", "")),
            relevance_score=match.score,
            source_label=str(source),
        )
