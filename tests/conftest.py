"""
Shared fixtures for the chunk_rag_bridge test suite.

Provides: HelperConfig with a test logger, in-memory fakes for the embedding
engine and the vector index, and the services wired on top of them.
"""

import asyncio
import logging

import pytest

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from services.chunk_store.ChunkStore import ChunkStore
from services.corpus.CorpusService import CorpusService
from services.embedding.EmbeddingService import EmbeddingService
from services.rag_sync.SyncService import SyncService

_CONFIG_KEYS = ("CHUNK_WORD_LIMIT", "SANDBOX_TIMEOUT_MS", "EMBED_DIMENSIONS", "EMBED_MODEL", "LLM_CHAT_MODEL")


class FakeEmbedClient:
    """Deterministic embedding engine that records how many requests overlap."""

    def __init__(self, fail_on: set[str] | None = None):
        self.fail_on = fail_on or set()
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def do_embed(self, texts):
        text = texts if isinstance(texts, str) else texts[0]
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # yield so every request of a batch is started before any finishes
            await asyncio.sleep(0)
            if text in self.fail_on:
                raise Exception("embedding engine unavailable")
            return [[float(len(text)), 1.0, 0.0, 0.5]]
        finally:
            self.in_flight -= 1


class InMemoryRAGClient:
    """Vector index kept in a dict, keyed by vector id."""

    read_global_index = staticmethod(RAGClientInterface.read_global_index)

    def __init__(self):
        self.vectors: dict[str, VectorPoint] = {}
        self.upsert_calls = 0
        self.fail_delete = False
        self.fail_query = False
        self.fail_upsert = False

    def get_engine_name(self) -> str:
        return "Memory"

    async def do_upsert_vectors(self, points: list[VectorPoint]) -> None:
        if self.fail_upsert:
            raise Exception("upsert rejected")
        self.upsert_calls += 1
        for point in points:
            self.vectors[point.id] = point

    async def do_query(self, vector, top_k, include_metadata=True, include_values=False) -> list[QueryMatch]:
        if self.fail_query:
            raise Exception("index unavailable")
        ordered = sorted(self.vectors.values(), key=lambda point: point.metadata.global_index)[:top_k]
        return [
            QueryMatch(
                id=point.id,
                score=round(0.9 - position * 0.1, 2),
                metadata=point.metadata.to_payload() if include_metadata else {},
                values=point.values if include_values else None,
            )
            for position, point in enumerate(ordered)
        ]

    async def do_delete_ids(self, ids: list[str]) -> None:
        if self.fail_delete:
            raise Exception("delete rejected")
        for vector_id in ids:
            self.vectors.pop(vector_id, None)

    async def do_fetch_all(self) -> list[QueryMatch]:
        return await self.do_query([], top_k=10000, include_metadata=True, include_values=True)

    async def do_fetch_max_global_index(self) -> int | None:
        if self.fail_query:
            raise Exception("index unavailable")
        return max((point.metadata.global_index for point in self.vectors.values()), default=None)


@pytest.fixture
def helper_config(monkeypatch) -> HelperConfig:
    """HelperConfig on a clean environment, logging through a ColorLogger."""
    for key in _CONFIG_KEYS:
        monkeypatch.delenv(key, raising=False)
    return HelperConfig(logger=ColorLogger(logging.getLogger("chunk_rag_bridge.tests")))


@pytest.fixture
def chunk_store(helper_config: HelperConfig) -> ChunkStore:
    return ChunkStore(helper_config=helper_config)


@pytest.fixture
def embed_client() -> FakeEmbedClient:
    return FakeEmbedClient()


@pytest.fixture
def rag_client() -> InMemoryRAGClient:
    return InMemoryRAGClient()


@pytest.fixture
def embedding_service(helper_config: HelperConfig, embed_client: FakeEmbedClient) -> EmbeddingService:
    return EmbeddingService(helper_config=helper_config, embed_client=embed_client)


@pytest.fixture
def sync_service(helper_config: HelperConfig, rag_client: InMemoryRAGClient, chunk_store: ChunkStore) -> SyncService:
    return SyncService(helper_config=helper_config, rag_client=rag_client, chunk_store=chunk_store)


@pytest.fixture
def corpus_service(
    helper_config: HelperConfig,
    chunk_store: ChunkStore,
    embedding_service: EmbeddingService,
    sync_service: SyncService,
) -> CorpusService:
    return CorpusService(
        helper_config=helper_config,
        chunk_store=chunk_store,
        embedding_service=embedding_service,
        sync_service=sync_service,
    )
