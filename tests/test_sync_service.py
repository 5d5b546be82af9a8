"""
Tests for SyncService: upload of new vectors, remote delete and rehydrate.
"""

import pytest

from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.exceptions.errors import SyncError
from shared.models.chunk import ChunkCategory
from services.chunk_store.ChunkStore import ChunkStore
from services.embedding.EmbeddingService import EmbeddingService
from services.rag_sync.SyncService import UPSERT_BATCH_SIZE, SyncService, make_vector_id


async def _add_embedded(chunk_store, embedding_service, count: int, category=ChunkCategory.FAQ):
    for n in range(count):
        chunk_store.add_chunk(f"{category.value} entry {n}", category)
    await embedding_service.do_embed_all(chunk_store.list_chunks())


@pytest.mark.asyncio
async def test_upload_new_marks_chunks_uploaded(chunk_store, embedding_service, sync_service, rag_client):
    await _add_embedded(chunk_store, embedding_service, 3)

    result = await sync_service.do_upload_new(chunk_store.list_chunks())

    assert result.uploaded_count == 3
    assert result.start_index == 0
    assert result.end_index == 2
    assert set(rag_client.vectors) == {"chunk_0", "chunk_1", "chunk_2"}
    assert all(chunk.uploaded_to_pinecone for chunk in chunk_store.list_chunks())


@pytest.mark.asyncio
async def test_upload_twice_second_call_uploads_nothing(chunk_store, embedding_service, sync_service, rag_client):
    await _add_embedded(chunk_store, embedding_service, 2)

    await sync_service.do_upload_new(chunk_store.list_chunks())
    second = await sync_service.do_upload_new(chunk_store.list_chunks())

    assert second.uploaded_count == 0
    assert rag_client.upsert_calls == 1


@pytest.mark.asyncio
async def test_upload_skips_chunks_without_embedding(chunk_store, sync_service, rag_client):
    chunk_store.add_chunk("not converted yet", ChunkCategory.GENERAL)

    result = await sync_service.do_upload_new(chunk_store.list_chunks())

    assert result.uploaded_count == 0
    assert rag_client.vectors == {}


@pytest.mark.asyncio
async def test_upload_in_batches(chunk_store, embedding_service, sync_service, rag_client):
    await _add_embedded(chunk_store, embedding_service, UPSERT_BATCH_SIZE + 5)

    result = await sync_service.do_upload_new(chunk_store.list_chunks())

    assert result.uploaded_count == UPSERT_BATCH_SIZE + 5
    assert rag_client.upsert_calls == 2


@pytest.mark.asyncio
async def test_upload_failure_marks_nothing(chunk_store, embedding_service, sync_service, rag_client):
    await _add_embedded(chunk_store, embedding_service, 2)
    rag_client.fail_upsert = True

    with pytest.raises(SyncError):
        await sync_service.do_upload_new(chunk_store.list_chunks())

    assert not any(chunk.uploaded_to_pinecone for chunk in chunk_store.list_chunks())


@pytest.mark.asyncio
async def test_upload_moves_new_chunks_above_remote_max(chunk_store, embedding_service, sync_service, rag_client):
    # vectors written by an earlier session that this process never rehydrated
    await _add_embedded(chunk_store, embedding_service, 1)
    await sync_service.do_upload_new(chunk_store.list_chunks())
    rag_client.vectors["chunk_41"] = rag_client.vectors["chunk_0"].model_copy(
        update={"id": "chunk_41", "metadata": rag_client.vectors["chunk_0"].metadata.model_copy(update={"global_index": 41})}
    )
    draft = chunk_store.add_chunk("new after foreign upload", ChunkCategory.FAQ)
    assert draft.global_index == 1
    await embedding_service.do_embed_all(chunk_store.list_chunks())

    result = await sync_service.do_upload_new(chunk_store.list_chunks())

    assert result.start_index == 42
    assert result.end_index == 42
    assert draft.global_index == 42
    assert rag_client.vectors["chunk_42"].metadata.text == "new after foreign upload"
    assert "chunk_1" not in rag_client.vectors
    assert rag_client.vectors["chunk_41"].metadata.global_index == 41
    assert chunk_store.add_chunk("next", ChunkCategory.FAQ).global_index == 43


@pytest.mark.asyncio
async def test_upload_from_fresh_session_keeps_existing_vectors(helper_config, embed_client, rag_client):
    first_store = ChunkStore(helper_config=helper_config)
    first_embedding = EmbeddingService(helper_config=helper_config, embed_client=embed_client)
    first_sync = SyncService(helper_config=helper_config, rag_client=rag_client, chunk_store=first_store)
    first_store.add_chunk("old remote text", ChunkCategory.GENERAL)
    await first_embedding.do_embed_all(first_store.list_chunks())
    await first_sync.do_upload_new(first_store.list_chunks())

    # second session starts without rehydrating
    second_store = ChunkStore(helper_config=helper_config)
    second_sync = SyncService(helper_config=helper_config, rag_client=rag_client, chunk_store=second_store)
    second_store.add_chunk("brand new text", ChunkCategory.GENERAL)
    await first_embedding.do_embed_all(second_store.list_chunks())
    await second_sync.do_upload_new(second_store.list_chunks())

    texts = {vector_id: point.metadata.text for vector_id, point in rag_client.vectors.items()}
    assert texts == {"chunk_0": "old remote text", "chunk_1": "brand new text"}


@pytest.mark.asyncio
async def test_edited_chunk_reuploads_under_its_old_id(chunk_store, embedding_service, sync_service, rag_client):
    await _add_embedded(chunk_store, embedding_service, 2)
    await sync_service.do_upload_new(chunk_store.list_chunks())
    await sync_service.do_delete_remote(0)
    chunk_store.edit_chunk("2.1", "rewritten answer", remote_deleted=True)
    await embedding_service.do_embed_all(chunk_store.list_chunks())

    await sync_service.do_upload_new(chunk_store.list_chunks())

    assert chunk_store.get_chunk("2.1").global_index == 0
    assert rag_client.vectors["chunk_0"].metadata.text == "rewritten answer"
    assert set(rag_client.vectors) == {"chunk_0", "chunk_1"}



@pytest.mark.asyncio
async def test_delete_remote_is_idempotent(chunk_store, embedding_service, sync_service, rag_client):
    await _add_embedded(chunk_store, embedding_service, 1)
    await sync_service.do_upload_new(chunk_store.list_chunks())

    await sync_service.do_delete_remote(0)
    await sync_service.do_delete_remote(0)

    assert make_vector_id(0) not in rag_client.vectors


@pytest.mark.asyncio
async def test_delete_remote_failure(sync_service, rag_client):
    rag_client.fail_delete = True

    with pytest.raises(SyncError):
        await sync_service.do_delete_remote(3)


@pytest.mark.asyncio
async def test_rehydrate_restores_records_and_counters(chunk_store, embedding_service, sync_service):
    await _add_embedded(chunk_store, embedding_service, 4, category=ChunkCategory.PRODUCT)
    await _add_embedded(chunk_store, embedding_service, 2, category=ChunkCategory.FAQ)
    await sync_service.do_upload_new(chunk_store.list_chunks())
    original = {chunk.local_index: chunk.content for chunk in chunk_store.list_chunks()}

    records = await sync_service.do_rehydrate()
    chunk_store.load_rehydrated(records)

    assert [record.global_index for record in records] == [0, 1, 2, 3, 4, 5]
    assert {chunk.local_index: chunk.content for chunk in chunk_store.list_chunks()} == original
    assert all(record.uploaded_to_pinecone and record.embedding for record in records)
    counters = chunk_store.counters()
    assert counters["next_global_index"] >= 6
    assert counters["category_sequences"]["product"] >= 4


@pytest.mark.asyncio
async def test_rehydrate_skips_unmappable_vectors(sync_service, rag_client):
    async def fetch_all():
        return [
            QueryMatch(id="chunk_0", values=[0.1], metadata={"text": "ok", "category": "faq", "chunkId": "2.1", "globalIndex": 0}),
            QueryMatch(id="chunk_1", values=[0.1], metadata={"category": "faq", "chunkId": "2.2", "globalIndex": 1}),
            QueryMatch(id="chunk_2", values=[0.1], metadata={"text": "bad id", "category": "faq", "chunkId": "x", "globalIndex": 2}),
            QueryMatch(id="chunk_3", values=[0.1], metadata={"text": "odd", "category": "recipes", "chunkId": "6.1", "globalIndex": 3}),
        ]

    rag_client.do_fetch_all = fetch_all

    records = await sync_service.do_rehydrate()

    assert [record.global_index for record in records] == [0, 3]
    assert records[1].category == ChunkCategory.OTHER


@pytest.mark.asyncio
async def test_rehydrate_failure(sync_service, rag_client):
    async def fetch_all():
        raise Exception("index unavailable")

    rag_client.do_fetch_all = fetch_all

    with pytest.raises(SyncError):
        await sync_service.do_rehydrate()
