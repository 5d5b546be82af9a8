"""Vector sync engine.

Keeps the remote vector index consistent with the locally embedded chunks.
The vector id of a chunk is derived from its global index ("chunk_<n>"), so
an edited chunk is re-uploaded under the same id it had before.
"""

from datetime import datetime, timezone

from pydantic import BaseModel

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.VectorPoint import ChunkVectorMetadata, VectorPoint
from shared.exceptions.errors import SyncError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import ChunkCategory, ChunkRecord, parse_local_index
from services.chunk_store.ChunkStore import ChunkStore

UPSERT_BATCH_SIZE = 100  # max vectors per upsert call


def make_vector_id(global_index: int) -> str:
    return f"chunk_{global_index}"


class UploadResult(BaseModel):
    """Outcome of do_upload_new().

    Attributes:
        uploaded_count: Vectors written. 0 means nothing was pending.
        start_index:    First global index that is safe to allocate after the
                        remote maximum at upload time (None for a no-op).
        end_index:      Highest global index uploaded (None for a no-op).
    """

    uploaded_count: int
    start_index: int | None = None
    end_index: int | None = None


class SyncService:
    """Uploads new vectors, deletes stale ones and rebuilds local state from the index."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        chunk_store: ChunkStore,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._chunk_store = chunk_store

    ##########################################
    ################ UPLOAD ##################
    ##########################################

    async def do_upload_new(self, chunks: list[ChunkRecord]) -> UploadResult:
        """Upload every chunk that has an embedding but is not in the index yet.

        Queries the index for its current maximum global index first and raises
        the chunk store's counter above it. A chunk that never owned a vector and
        whose global index is not above that maximum is moved to a fresh index,
        so a vector stored by another session is never overwritten. Chunks that
        owned their id before (edits) keep it. Vectors are upserted in batches of
        UPSERT_BATCH_SIZE, sequentially. Chunks are flagged uploaded only after
        all batches succeeded.

        Args:
            chunks (list[ChunkRecord]): Candidates; only embedded, not-yet-uploaded ones are sent.

        Returns:
            UploadResult: Count and index range of the uploaded vectors.

        Raises:
            SyncError: If querying or upserting fails. No chunk is flagged in that case.
        """
        pending = [chunk for chunk in chunks if chunk.embedding is not None and not chunk.uploaded_to_pinecone]
        if not pending:
            self.logging.info("No new embedded chunks to upload.")
            return UploadResult(uploaded_count=0)

        try:
            remote_max = await self._rag_client.do_fetch_max_global_index()
        except Exception as exc:
            self.logging.error("Could not determine the current maximum global index: %s", exc)
            raise SyncError(f"Max index lookup failed: {exc}") from exc

        safe_offset = 0 if remote_max is None else remote_max + 1
        self._chunk_store.ensure_global_floor(safe_offset)
        pending.sort(key=lambda chunk: chunk.global_index)
        for chunk in pending:
            if chunk.global_index < safe_offset and not chunk.remote_id_claimed:
                self._chunk_store.reassign_global_index(chunk)

        pending.sort(key=lambda chunk: chunk.global_index)
        uploaded_at = int(datetime.now(timezone.utc).timestamp() * 1000)
        points = [self._build_point(chunk, uploaded_at) for chunk in pending]

        try:
            for batch_start in range(0, len(points), UPSERT_BATCH_SIZE):
                batch = points[batch_start: batch_start + UPSERT_BATCH_SIZE]
                await self._rag_client.do_upsert_vectors(batch)
                self.logging.info(
                    "Upserted vectors %d-%d of %d to %s.",
                    batch_start + 1, batch_start + len(batch), len(points), self._rag_client.get_engine_name(),
                )
        except Exception as exc:
            self.logging.error("Upsert failed: %s", exc)
            raise SyncError(f"Upsert failed: {exc}") from exc

        self._chunk_store.mark_uploaded(pending)
        self.logging.info("Uploaded %d chunk(s) to the vector index.", len(pending), color="green")
        return UploadResult(
            uploaded_count=len(pending),
            start_index=safe_offset,
            end_index=pending[-1].global_index,
        )

    def _build_point(self, chunk: ChunkRecord, uploaded_at: int) -> VectorPoint:
        return VectorPoint(
            id=make_vector_id(chunk.global_index),
            values=chunk.embedding,
            metadata=ChunkVectorMetadata(
                text=chunk.content,
                category=chunk.category.value,
                chunk_id=chunk.local_index,
                global_index=chunk.global_index,
                timestamp=uploaded_at,
            ),
        )

    ##########################################
    ################ DELETE ##################
    ##########################################

    async def do_delete_remote(self, global_index: int) -> None:
        """Delete the vector of a chunk. Deleting a vector that is not stored is not an error.

        Raises:
            SyncError: If the index rejects the delete.
        """
        vector_id = make_vector_id(global_index)
        try:
            await self._rag_client.do_delete_ids([vector_id])
        except Exception as exc:
            self.logging.error("Delete of vector %s failed: %s", vector_id, exc)
            raise SyncError(f"Delete of {vector_id} failed: {exc}") from exc
        self.logging.info("Deleted vector %s.", vector_id)

    ##########################################
    ############### REHYDRATE ################
    ##########################################

    async def do_rehydrate(self) -> list[ChunkRecord]:
        """Rebuild chunk records from everything stored in the vector index.

        Records are sorted by global index ascending and flagged uploaded.
        Vectors whose metadata cannot be mapped to a chunk are skipped with a warning.

        Returns:
            list[ChunkRecord]: The rebuilt records.

        Raises:
            SyncError: If the index cannot be read.
        """
        try:
            matches = await self._rag_client.do_fetch_all()
        except Exception as exc:
            self.logging.error("Rehydrate failed: %s", exc)
            raise SyncError(f"Rehydrate failed: {exc}") from exc

        records: list[ChunkRecord] = []
        for match in matches:
            record = self._match_to_record(match)
            if record is not None:
                records.append(record)
        records.sort(key=lambda record: record.global_index)

        self.logging.info(
            "Rehydrated %d chunk(s) from %d stored vector(s).", len(records), len(matches), color="cyan"
        )
        return records

    def _match_to_record(self, match: QueryMatch) -> ChunkRecord | None:
        metadata = match.metadata
        global_index = self._rag_client.read_global_index(match)
        if global_index is None or not match.values or "text" not in metadata:
            self.logging.warning("Skipping vector %s: missing values, text or global index.", match.id)
            return None
        try:
            category = ChunkCategory(metadata.get("category", ChunkCategory.OTHER.value))
        except ValueError:
            self.logging.warning("Vector %s has unknown category %r, using 'other'.", match.id, metadata.get("category"))
            category = ChunkCategory.OTHER
        local_index = str(metadata.get("chunkId") or "")
        try:
            ordinal, _ = parse_local_index(local_index)
            ChunkCategory.from_ordinal(ordinal)
        except ValueError:
            self.logging.warning("Skipping vector %s: malformed local index %r.", match.id, local_index)
            return None

        timestamp = metadata.get("timestamp")
        generated_at = None
        if isinstance(timestamp, (int, float)):
            generated_at = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)

        return ChunkRecord(
            content=metadata["text"],
            category=category,
            local_index=local_index,
            global_index=global_index,
            embedding=match.values,
            embedding_generated_at=generated_at,
            uploaded_to_pinecone=True,
            remote_id_claimed=True,
        )
