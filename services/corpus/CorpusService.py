"""Operator-facing corpus operations.

Composes the chunk store, the embedding pipeline and the vector sync engine.
Whenever a change touches a chunk that is already uploaded, the remote vector
is removed first; if that fails the local record stays exactly as it was.
"""

from shared.exceptions.errors import SyncError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import ChunkCategory, ChunkRecord
from services.chunk_store.ChunkStore import ChunkStore, OrderBy
from services.embedding.EmbeddingService import EmbedAllResult, EmbeddingService
from services.rag_sync.SyncService import SyncService, UploadResult


class CorpusService:

    def __init__(
        self,
        helper_config: HelperConfig,
        chunk_store: ChunkStore,
        embedding_service: EmbeddingService,
        sync_service: SyncService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._chunk_store = chunk_store
        self._embedding_service = embedding_service
        self._sync_service = sync_service

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_chunk(self, local_index: str) -> ChunkRecord:
        return self._chunk_store.get_chunk(local_index)

    def do_list_chunks(self, order_by: OrderBy = "global_index") -> list[ChunkRecord]:
        return self._chunk_store.list_chunks(order_by=order_by)

    ##########################################
    ############### MUTATIONS ################
    ##########################################

    def do_add_chunk(self, content: str, category: ChunkCategory | str, confirm_long: bool = False) -> ChunkRecord:
        return self._chunk_store.add_chunk(content, category, confirm_long=confirm_long)

    async def do_edit_chunk(
        self,
        local_index: str,
        content: str,
        category: ChunkCategory | str | None = None,
        confirm_long: bool = False,
    ) -> ChunkRecord:
        """Replace a chunk's content (and optionally its category).

        The edited chunk is a draft again: no embedding and not uploaded. For an
        uploaded chunk the remote vector is deleted before anything changes
        locally, so the index never keeps serving the old text as current.

        Raises:
            ValidationError: Unknown chunk, empty content or unknown category.
            WordLimitExceededError: If the new content is too long and not confirmed.
            SyncError: If the remote vector could not be deleted. Nothing is changed.
        """
        chunk = self._chunk_store.get_chunk(local_index)
        # validate before touching the remote side
        self._chunk_store.check_edit(chunk, content, category, confirm_long)

        remote_deleted = False
        if chunk.uploaded_to_pinecone:
            try:
                await self._sync_service.do_delete_remote(chunk.global_index)
            except SyncError:
                self.logging.error("Edit of chunk %s aborted: remote vector could not be deleted.", local_index)
                raise
            remote_deleted = True

        return self._chunk_store.edit_chunk(
            local_index,
            content,
            new_category=category,
            remote_deleted=remote_deleted,
            confirm_long=confirm_long,
        )

    async def do_delete_chunk(self, local_index: str) -> ChunkRecord:
        """Delete a chunk locally and, if uploaded, from the vector index.

        Raises:
            ValidationError: If the chunk does not exist.
            SyncError: If the remote vector could not be deleted. The local chunk is kept.
        """
        chunk = self._chunk_store.get_chunk(local_index)
        if chunk.uploaded_to_pinecone:
            try:
                await self._sync_service.do_delete_remote(chunk.global_index)
            except SyncError:
                self.logging.error("Delete of chunk %s aborted: remote vector could not be deleted.", local_index)
                raise
        return self._chunk_store.delete_chunk(local_index)

    ##########################################
    ############### PIPELINE #################
    ##########################################

    async def do_embed_chunk(self, local_index: str) -> ChunkRecord:
        """
        Raises:
            ValidationError: If the chunk does not exist.
            EmbeddingError: If the embedding request fails.
        """
        chunk = self._chunk_store.get_chunk(local_index)
        await self._embedding_service.do_embed_one(chunk)
        return chunk

    async def do_embed_all(self) -> EmbedAllResult:
        return await self._embedding_service.do_embed_all(self._chunk_store.list_chunks())

    async def do_upload_new(self) -> UploadResult:
        return await self._sync_service.do_upload_new(self._chunk_store.list_chunks())

    async def do_rehydrate(self) -> list[ChunkRecord]:
        """Replace the local corpus with the chunks stored in the vector index.

        Raises:
            SyncError: If the index cannot be read. The local corpus is untouched.
        """
        records = await self._sync_service.do_rehydrate()
        self._chunk_store.load_rehydrated(records)
        return self._chunk_store.list_chunks()
