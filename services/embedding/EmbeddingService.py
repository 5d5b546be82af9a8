"""Embedding pipeline.

Converts chunk text to vectors, one chunk at a time or in bounded-concurrency
batches. A chunk's embedding fields are only written after its own request
succeeded, so a failed run keeps the progress made so far.
"""

import asyncio
from datetime import datetime, timezone

from pydantic import BaseModel

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.exceptions.errors import EmbeddingError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import ChunkRecord

EMBED_CONCURRENCY = 5  # requests in flight per batch


class EmbedAllResult(BaseModel):
    embedded_count: int
    batch_count: int


class EmbeddingService:
    """Turns chunk and query text into vectors through the configured embed client."""

    def __init__(self, helper_config: HelperConfig, embed_client: EmbedClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client

    ##########################################
    ################ CORE ####################
    ##########################################

    async def do_embed_text(self, text: str) -> list[float]:
        """Embed a single text (e.g. a search query).

        Raises:
            EmbeddingError: On transport or engine failure.
        """
        try:
            vectors = await self._embed_client.do_embed(text)
        except Exception as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc
        return vectors[0]

    async def do_embed_one(self, chunk: ChunkRecord) -> list[float]:
        """Embed a chunk's content and store the vector on the chunk.

        Args:
            chunk (ChunkRecord): The chunk to convert.

        Returns:
            list[float]: The new embedding.

        Raises:
            EmbeddingError: On failure. The chunk's embedding fields are left unchanged.
        """
        try:
            vector = await self.do_embed_text(chunk.content)
        except EmbeddingError as exc:
            self.logging.error("Embedding failed for chunk %s: %s", chunk.local_index, exc)
            raise
        chunk.embedding = vector
        chunk.embedding_generated_at = datetime.now(timezone.utc)
        self.logging.debug("Embedded chunk %s (%d dims).", chunk.local_index, len(vector))
        return vector

    async def do_embed_all(self, chunks: list[ChunkRecord]) -> EmbedAllResult:
        """Embed every chunk that has no embedding yet.

        Chunks are processed in batches of EMBED_CONCURRENCY. Requests inside a
        batch run concurrently and the batch is awaited as a whole before the
        next one starts. If any request fails, the remaining batches are skipped
        and EmbeddingError is raised; chunks embedded so far keep their vectors.

        Args:
            chunks (list[ChunkRecord]): Candidate chunks; already embedded ones are skipped.

        Returns:
            EmbedAllResult: Number of chunks embedded and batches issued.

        Raises:
            EmbeddingError: If any request of the run failed.
        """
        pending = [chunk for chunk in chunks if chunk.embedding is None]
        if not pending:
            self.logging.info("No chunks without embedding, nothing to do.")
            return EmbedAllResult(embedded_count=0, batch_count=0)

        embedded = 0
        batch_count = 0
        total_batches = (len(pending) + EMBED_CONCURRENCY - 1) // EMBED_CONCURRENCY
        for batch_start in range(0, len(pending), EMBED_CONCURRENCY):
            batch = pending[batch_start: batch_start + EMBED_CONCURRENCY]
            batch_count += 1
            results = await asyncio.gather(
                *[self.do_embed_one(chunk) for chunk in batch],
                return_exceptions=True,
            )
            errors = [result for result in results if isinstance(result, BaseException)]
            embedded += len(batch) - len(errors)
            self.logging.info(
                "Embedding batch %d of %d: %d ok, %d failed.",
                batch_count, total_batches, len(batch) - len(errors), len(errors),
            )
            if errors:
                raise EmbeddingError(
                    f"{len(errors)} embedding request(s) failed in batch {batch_count}; "
                    f"{embedded} chunk(s) embedded before the abort. First error: {errors[0]}"
                )

        self.logging.info("Embedded %d chunk(s) in %d batch(es).", embedded, batch_count, color="green")
        return EmbedAllResult(embedded_count=embedded, batch_count=batch_count)
