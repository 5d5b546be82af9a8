"""
Tests for RetrievalService and ChatService: references, context assembly and failure handling.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.exceptions.errors import ChatError, SyncError, ValidationError
from shared.models.chat import Message, Reference
from shared.models.chunk import ChunkCategory
from services.chat.ChatService import ChatService
from services.retrieval.RetrievalService import SEARCH_TOP_K, RetrievalService


@pytest.fixture
def retrieval_service(helper_config, rag_client, embedding_service) -> RetrievalService:
    return RetrievalService(helper_config=helper_config, rag_client=rag_client, embedding_service=embedding_service)


@pytest.fixture
def llm_client() -> MagicMock:
    client = MagicMock()
    client.do_chat = AsyncMock(return_value="We are open from 9 to 5.")
    return client


@pytest.fixture
def chat_service(helper_config, llm_client, retrieval_service) -> ChatService:
    return ChatService(helper_config=helper_config, llm_client=llm_client, retrieval_service=retrieval_service)


async def _upload(corpus_service, texts: list[str]) -> None:
    for text in texts:
        corpus_service.do_add_chunk(text, ChunkCategory.FAQ)
    await corpus_service.do_embed_all()
    await corpus_service.do_upload_new()


class TestRetrieval:

    @pytest.mark.asyncio
    async def test_empty_index_returns_no_references(self, retrieval_service):
        references = await retrieval_service.do_retrieve("opening hours")

        assert references == []
        assert retrieval_service.build_context(references) == ""

    @pytest.mark.asyncio
    async def test_returns_top_k_in_index_order(self, retrieval_service, corpus_service):
        await _upload(corpus_service, ["one", "two", "three", "four"])

        references = await retrieval_service.do_retrieve("numbers")

        assert len(references) == SEARCH_TOP_K
        assert [reference.text for reference in references] == ["one", "two", "three"]
        assert references[0].relevance_score == 0.9
        assert references[0].source_label == "Unknown"

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self, retrieval_service):
        with pytest.raises(ValidationError):
            await retrieval_service.do_retrieve("  ")

    @pytest.mark.asyncio
    async def test_search_failure_raises_sync_error(self, retrieval_service, rag_client):
        rag_client.fail_query = True

        with pytest.raises(SyncError):
            await retrieval_service.do_retrieve("anything")

    @pytest.mark.asyncio
    async def test_search_failure_is_no_context_for_chat(self, retrieval_service, rag_client):
        rag_client.fail_query = True

        assert await retrieval_service.do_retrieve_for_chat("anything") == []

    def test_build_context_joins_with_blank_line(self):
        references = [
            Reference(text="first", relevance_score=0.9),
            Reference(text="second", relevance_score=0.8),
        ]

        assert RetrievalService.build_context(references) == "first\n\nsecond"


class TestChat:

    @pytest.mark.asyncio
    async def test_empty_index_still_replies(self, chat_service, llm_client):
        result = await chat_service.do_answer("When are you open?")

        assert result.reply == "We are open from 9 to 5."
        assert result.references == []
        messages = llm_client.do_chat.await_args.args[0]
        assert messages[0]["role"] == "system"
        assert messages[-1] == {"role": "user", "content": "When are you open?"}

    @pytest.mark.asyncio
    async def test_prompt_carries_context_and_history(self, chat_service, corpus_service, llm_client):
        await _upload(corpus_service, ["Opening hours are 9 to 5."])
        history = [
            Message(role="user", content="Hi"),
            Message(role="bot", content="Hello! How can I help?"),
        ]

        result = await chat_service.do_answer("When are you open?", history)

        messages = llm_client.do_chat.await_args.args[0]
        assert "Opening hours are 9 to 5." in messages[0]["content"]
        assert [message["role"] for message in messages] == ["system", "user", "assistant", "user"]
        assert [reference.text for reference in result.references] == ["Opening hours are 9 to 5."]

    @pytest.mark.asyncio
    async def test_failed_search_answers_without_context(self, chat_service, rag_client, llm_client):
        rag_client.fail_query = True

        result = await chat_service.do_answer("When are you open?")

        assert result.references == []
        assert result.reply == "We are open from 9 to 5."

    @pytest.mark.asyncio
    async def test_completion_failure_raises_chat_error(self, chat_service, llm_client):
        llm_client.do_chat.side_effect = Exception("model overloaded")

        with pytest.raises(ChatError) as exc_info:
            await chat_service.do_answer("When are you open?")

        assert exc_info.value.to_response() == {
            "error": "There was an error processing your request.",
            "kind": "chat_error",
        }

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, chat_service):
        with pytest.raises(ValidationError):
            await chat_service.do_answer("")
