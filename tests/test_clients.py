"""
Client-level tests against httpx.MockTransport: wire formats of the vector
index, embedding, completion and messaging engines.
"""

import json
import time

import httpx
import pytest

from shared.clients.ClientInterface import ClientResponseError
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.clients.messaging.MessagingClientManager import MessagingClientManager
from shared.clients.messaging.slack.MessagingClientSlack import MessagingClientSlack
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.rag.models.VectorPoint import ChunkVectorMetadata, VectorPoint
from shared.clients.rag.pinecone.RAGClientPinecone import RAGClientPinecone
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant, make_point_id
from shared.exceptions.errors import SignatureError
from shared.helper.signature import compute_signature


@pytest.fixture
def engine_env(monkeypatch):
    monkeypatch.setenv("EMBED_DIMENSIONS", "3")
    monkeypatch.setenv("RAG_PINECONE_BASE_URL", "https://chunks-abc.svc.pinecone.io")
    monkeypatch.setenv("RAG_PINECONE_API_KEY", "pc-key")
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", "http://qdrant:6333")
    monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-embed")
    monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-chat")
    monkeypatch.setenv("MESSAGING_SLACK_BOT_TOKEN", "xoxb-test")
    monkeypatch.setenv("MESSAGING_SLACK_SIGNING_SECRET", "signing-secret")
    for key in ("RAG_PINECONE_NAMESPACE", "RAG_QDRANT_API_KEY", "RAG_QDRANT_COLLECTION", "RAG_ENGINE", "LLM_TEMPERATURE", "LLM_MAX_TOKENS"):
        monkeypatch.delenv(key, raising=False)


def _point(global_index: int) -> VectorPoint:
    return VectorPoint(
        id=f"chunk_{global_index}",
        values=[0.1, 0.2, 0.3],
        metadata=ChunkVectorMetadata(text="text", category="faq", chunk_id="2.1", global_index=global_index, timestamp=1),
    )


class TestPinecone:

    @pytest.mark.asyncio
    async def test_upsert_sends_vectors_with_headers(self, helper_config, engine_env):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["headers"] = request.headers
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"upsertedCount": 1})

        client = RAGClientPinecone(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        await client.do_upsert_vectors([_point(4)])
        await client.close()

        assert captured["path"] == "/vectors/upsert"
        assert captured["headers"]["api-key"] == "pc-key"
        assert captured["headers"]["x-pinecone-api-version"] == "2024-07"
        vector = captured["body"]["vectors"][0]
        assert vector["id"] == "chunk_4"
        assert vector["metadata"]["globalIndex"] == 4
        assert vector["metadata"]["chunkId"] == "2.1"
        assert "source" not in vector["metadata"]

    @pytest.mark.asyncio
    async def test_query_parses_matches(self, helper_config, engine_env):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["topK"] == 3
            assert body["includeMetadata"] is True
            return httpx.Response(200, json={"matches": [
                {"id": "chunk_2", "score": 0.91, "metadata": {"text": "a", "globalIndex": 2}},
                {"id": "chunk_0", "score": 0.55, "metadata": {"text": "b"}},
            ]})

        client = RAGClientPinecone(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        matches = await client.do_query([0.1, 0.2, 0.3], top_k=3)
        await client.close()

        assert [match.id for match in matches] == ["chunk_2", "chunk_0"]
        assert [client.read_global_index(match) for match in matches] == [2, 0]

    @pytest.mark.asyncio
    async def test_delete_missing_id_is_not_an_error(self, helper_config, engine_env):
        client = RAGClientPinecone(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda request: httpx.Response(404)))

        await client.do_delete_ids(["chunk_9"])
        await client.close()

    @pytest.mark.asyncio
    async def test_delete_rejected(self, helper_config, engine_env):
        client = RAGClientPinecone(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda request: httpx.Response(500)))

        with pytest.raises(ClientResponseError):
            await client.do_delete_ids(["chunk_9"])
        await client.close()

    @pytest.mark.asyncio
    async def test_fetch_all_uses_zero_probe(self, helper_config, engine_env):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"matches": [{"id": "chunk_0", "values": [1.0, 0.0, 0.0], "metadata": {"text": "x"}}]})

        client = RAGClientPinecone(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        matches = await client.do_fetch_all()
        await client.close()

        assert captured["body"]["vector"] == [0.0, 0.0, 0.0]
        assert captured["body"]["includeValues"] is True
        assert matches[0].values == [1.0, 0.0, 0.0]

    def test_manager_picks_engine_from_env(self, helper_config, engine_env, monkeypatch):
        monkeypatch.setenv("RAG_ENGINE", "pinecone")

        assert isinstance(RAGClientManager(helper_config=helper_config).get_client(), RAGClientPinecone)

    def test_missing_api_key_fails_at_construction(self, helper_config, engine_env, monkeypatch):
        monkeypatch.delenv("RAG_PINECONE_API_KEY")

        with pytest.raises(ValueError):
            RAGClientPinecone(helper_config=helper_config)


class TestQdrant:

    @pytest.mark.asyncio
    async def test_upsert_maps_ids_to_uuid(self, helper_config, engine_env):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"status": "ok"})

        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        await client.do_upsert_vectors([_point(7)])
        await client.close()

        point = captured["body"]["points"][0]
        assert captured["method"] == "PUT"
        assert captured["path"] == "/collections/chunks/points"
        assert point["id"] == make_point_id("chunk_7")
        assert point["payload"]["vector_id"] == "chunk_7"

    @pytest.mark.asyncio
    async def test_fetch_all_scrolls_every_page(self, helper_config, engine_env):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/count"):
                return httpx.Response(200, json={"result": {"count": 2}})
            body = json.loads(request.content)
            if body.get("offset") is None:
                return httpx.Response(200, json={"result": {
                    "points": [{"id": make_point_id("chunk_0"), "vector": [1.0, 0.0, 0.0], "payload": {"text": "a", "vector_id": "chunk_0"}}],
                    "next_page_offset": "cursor-1",
                }})
            return httpx.Response(200, json={"result": {
                "points": [{"id": make_point_id("chunk_1"), "vector": [0.0, 1.0, 0.0], "payload": {"text": "b", "vector_id": "chunk_1"}}],
                "next_page_offset": None,
            }})

        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        matches = await client.do_fetch_all()
        await client.close()

        assert [match.id for match in matches] == ["chunk_0", "chunk_1"]
        assert "vector_id" not in matches[0].metadata
        assert [client.read_global_index(match) for match in matches] == [0, 1]


class TestOpenai:

    @pytest.mark.asyncio
    async def test_embeddings_sorted_by_index(self, helper_config, engine_env):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["authorization"] == "Bearer sk-embed"
            return httpx.Response(200, json={"data": [
                {"index": 1, "embedding": [0.0, 1.0, 0.0]},
                {"index": 0, "embedding": [1.0, 0.0, 0.0]},
            ]})

        client = EmbedClientOpenai(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        vectors = await client.do_embed(["first", "second"])
        await client.close()

        assert vectors == [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]

    @pytest.mark.asyncio
    async def test_wrong_dimensions_rejected(self, helper_config, engine_env):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 0.0]}]})

        client = EmbedClientOpenai(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        with pytest.raises(ValueError):
            await client.do_embed("text")
        await client.close()

    @pytest.mark.asyncio
    async def test_chat_uses_fixed_sampling(self, helper_config, engine_env):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "Hello!"}}]})

        client = LLMClientOpenai(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        reply = await client.do_chat([{"role": "user", "content": "Hi"}])
        await client.close()

        assert reply == "Hello!"
        assert captured["body"]["temperature"] == 0.7
        assert captured["body"]["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_chat_error_status_raises(self, helper_config, engine_env):
        client = LLMClientOpenai(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda request: httpx.Response(429)))

        with pytest.raises(ClientResponseError):
            await client.do_chat([{"role": "user", "content": "Hi"}])
        await client.close()


class TestSlack:

    @pytest.mark.asyncio
    async def test_history_oldest_first_with_bot_roles(self, helper_config, engine_env):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["limit"] == "5"
            return httpx.Response(200, json={"ok": True, "messages": [
                {"text": "newest question", "user": "U1"},
                {"text": "bot answer", "bot_id": "B1"},
                {"text": "oldest question", "user": "U1"},
            ]})

        client = MessagingClientSlack(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        history = await client.do_fetch_history("C1")
        await client.close()

        assert [message.content for message in history] == ["oldest question", "bot answer", "newest question"]
        assert [message.role for message in history] == ["user", "assistant", "user"]

    @pytest.mark.asyncio
    async def test_post_message_in_thread(self, helper_config, engine_env):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            captured["auth"] = request.headers["authorization"]
            return httpx.Response(200, json={"ok": True})

        client = MessagingClientSlack(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        await client.do_post_message("C1", "answer", thread_ts="1700000000.0001")
        await client.close()

        assert captured["path"] == "/api/chat.postMessage"
        assert captured["body"] == {"channel": "C1", "text": "answer", "thread_ts": "1700000000.0001"}
        assert captured["auth"] == "Bearer xoxb-test"

    @pytest.mark.asyncio
    async def test_api_error_raises(self, helper_config, engine_env):
        client = MessagingClientSlack(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": False, "error": "channel_not_found"})))

        with pytest.raises(Exception, match="channel_not_found"):
            await client.do_post_message("C404", "answer")
        await client.close()

    def test_verify_request(self, helper_config, engine_env):
        client = MessagingClientSlack(helper_config=helper_config)
        body = b'{"type":"event_callback"}'
        timestamp = str(int(time.time()))
        signature = compute_signature(b"signing-secret", timestamp, body)

        client.verify_request({"x-slack-request-timestamp": timestamp, "x-slack-signature": signature}, body)
        with pytest.raises(SignatureError):
            client.verify_request({"x-slack-request-timestamp": timestamp, "x-slack-signature": "v0=00"}, body)


class TestManagersAndOllama:

    def test_messaging_disabled_by_default(self, helper_config, engine_env, monkeypatch):
        monkeypatch.delenv("MESSAGING_ENGINE", raising=False)

        assert MessagingClientManager(helper_config=helper_config).get_client() is None

    def test_unknown_engine_rejected(self, helper_config, engine_env, monkeypatch):
        monkeypatch.setenv("RAG_ENGINE", "weaviate")

        with pytest.raises(ValueError, match="weaviate"):
            RAGClientManager(helper_config=helper_config)

    @pytest.mark.asyncio
    async def test_ollama_embed_without_auth_header(self, helper_config, engine_env, monkeypatch):
        monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama:11434")
        monkeypatch.delenv("EMBED_OLLAMA_API_KEY", raising=False)
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["auth"] = request.headers.get("authorization")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"embeddings": [[0.5, 0.5, 0.0]]})

        client = EmbedClientOllama(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        vectors = await client.do_embed("hello")
        await client.close()

        assert vectors == [[0.5, 0.5, 0.0]]
        assert captured["path"] == "/api/embed"
        assert captured["auth"] is None
        assert captured["body"]["input"] == ["hello"]

    @pytest.mark.asyncio
    async def test_ollama_chat_options(self, helper_config, engine_env, monkeypatch):
        monkeypatch.setenv("LLM_OLLAMA_BASE_URL", "http://ollama:11434")
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"role": "assistant", "content": "Hallo"}})

        client = LLMClientOllama(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        reply = await client.do_chat([{"role": "user", "content": "Hi"}], max_tokens=50)
        await client.close()

        assert reply == "Hallo"
        assert captured["body"]["stream"] is False
        assert captured["body"]["options"] == {"temperature": 0.7, "num_predict": 50}

    @pytest.mark.asyncio
    async def test_qdrant_creates_missing_collection(self, helper_config, engine_env):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, request.url.path))
            if request.url.path.endswith("/exists"):
                return httpx.Response(200, json={"result": {"exists": False}})
            assert json.loads(request.content) == {"vectors": {"size": 3, "distance": "Cosine"}}
            return httpx.Response(200, json={"result": True})

        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        await client.do_prepare_index()
        await client.close()

        assert calls == [("GET", "/collections/chunks/exists"), ("PUT", "/collections/chunks")]
