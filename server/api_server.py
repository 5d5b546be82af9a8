"""FastAPI application entry point for chunk_rag_bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.exceptions.errors import SyncError
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.messaging.MessagingClientManager import MessagingClientManager
from services.chunk_store.ChunkStore import ChunkStore
from services.embedding.EmbeddingService import EmbeddingService
from services.rag_sync.SyncService import SyncService
from services.corpus.CorpusService import CorpusService
from services.retrieval.RetrievalService import RetrievalService
from services.chat.ChatService import ChatService
from services.sandbox.SandboxService import SandboxService
from services.messaging.MessagingEventService import MessagingEventService
from server.core.exception_handlers import register_exception_handlers
from server.routers.ChunkRouter import router as chunk_router
from server.routers.VectorDBRouter import router as vectordb_router
from server.routers.QueryRouter import router as query_router
from server.routers.ChatRouter import router as chat_router
from server.routers.SandboxRouter import router as sandbox_router
from server.routers.WebhookRouter import router as webhook_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # startup: config, clients, services
    app.state.logging = logging
    helper_config = HelperConfig(logger=logging)
    app.state.helper_config = helper_config

    embed_client = EmbedClientManager(helper_config=helper_config).get_client()
    llm_client = LLMClientManager(helper_config=helper_config).get_client()
    rag_client = RAGClientManager(helper_config=helper_config).get_client()
    messaging_client = MessagingClientManager(helper_config=helper_config).get_client()
    clients: list[ClientInterface] = [
        client for client in (embed_client, llm_client, rag_client, messaging_client) if client is not None
    ]

    for client in clients:
        await client.boot()
    logging.info("Booted %d client(s): %s", len(clients), ", ".join(type(client).__name__ for client in clients))

    await check_connections(clients)
    await rag_client.do_prepare_index()

    chunk_store = ChunkStore(helper_config=helper_config)
    embedding_service = EmbeddingService(helper_config=helper_config, embed_client=embed_client)
    sync_service = SyncService(helper_config=helper_config, rag_client=rag_client, chunk_store=chunk_store)
    retrieval_service = RetrievalService(
        helper_config=helper_config,
        rag_client=rag_client,
        embedding_service=embedding_service,
    )
    chat_service = ChatService(helper_config=helper_config, llm_client=llm_client, retrieval_service=retrieval_service)

    app.state.chunk_store = chunk_store
    app.state.corpus_service = CorpusService(
        helper_config=helper_config,
        chunk_store=chunk_store,
        embedding_service=embedding_service,
        sync_service=sync_service,
    )
    app.state.retrieval_service = retrieval_service
    app.state.chat_service = chat_service
    app.state.sandbox_service = SandboxService(helper_config=helper_config)
    app.state.messaging_client = messaging_client
    app.state.messaging_event_service = (
        MessagingEventService(helper_config=helper_config, messaging_client=messaging_client, chat_service=chat_service)
        if messaging_client is not None
        else None
    )

    # counters must be restored before the first chunk is added
    try:
        await app.state.corpus_service.do_rehydrate()
    except SyncError as exc:
        logging.warning("Startup rehydrate failed, starting with an empty corpus: %s", exc.message)

    yield

    # local drafts are not persisted, only uploaded chunks survive a restart
    for client in clients:
        await client.close()
    logging.info("Shut down, %d local chunk(s) dropped from memory.", len(chunk_store.list_chunks()))


app = FastAPI(
    title="chunk_rag_bridge",
    description=(
        "Retrieval-augmented chatbot backend. Operators curate categorised knowledge chunks, "
        "embed them and upload them to a vector index. Chat answers, served via POST /chat "
        "and the Slack webhook, are grounded on the closest chunks."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chunk_router)
app.include_router(vectordb_router)
app.include_router(query_router)
app.include_router(chat_router)
app.include_router(sandbox_router)
app.include_router(webhook_router)

register_exception_handlers(app)


async def check_connections(clients: list[ClientInterface]) -> None:
    """Check connectivity to all configured backends on startup.

    Messaging failures are non-fatal (replies will fail later, but the server stays up).
    Embedding, completion and vector index failures are fatal.

    Raises:
        Exception: If a critical service is not reachable.
    """
    for client in clients:
        result: httpx.Response = await client.do_healthcheck()
        if result.is_success:
            continue
        if client.get_client_type() == "messaging":
            logging.warning(
                "Messaging client '%s' is not reachable (status %d). Webhook replies may fail.",
                client.__class__.__name__,
                result.status_code,
            )
            continue
        raise Exception(
            f"{client.get_client_type().upper()} client '{client.__class__.__name__}' is not reachable "
            f"(status {result.status_code})."
        )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting chunk_rag_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
