"""Pydantic models for corpus chunks.

Python attributes are snake_case; the JSON wire names are the camelCase
names used by the operator UI and stored in vector metadata
(``localIndex``, ``globalIndex``, ``embeddingGeneratedAt``, ``uploadedToPinecone``).
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChunkCategory(str, Enum):
    """Operator-facing document categories. Each has its own local numbering sequence."""

    GENERAL = "general"
    FAQ = "faq"
    PRODUCT = "product"
    POLICY = "policy"
    TECHNICAL = "technical"
    OTHER = "other"

    @property
    def ordinal(self) -> int:
        """One-based position of the category, used as the prefix of a local index."""
        return list(ChunkCategory).index(self) + 1

    @classmethod
    def from_ordinal(cls, ordinal: int) -> "ChunkCategory":
        members = list(cls)
        if ordinal < 1 or ordinal > len(members):
            raise ValueError(f"Unknown category ordinal {ordinal}.")
        return members[ordinal - 1]


def make_local_index(category: ChunkCategory, sequence: int) -> str:
    """Build the compound "<categoryOrdinal>.<sequence>" identifier."""
    return f"{category.ordinal}.{sequence}"


def parse_local_index(local_index: str) -> tuple[int, int]:
    """Split a local index into (category ordinal, sequence).

    Raises:
        ValueError: If the value is not of the form "<int>.<int>".
    """
    ordinal, _, sequence = str(local_index).partition(".")
    if not ordinal.isdigit() or not sequence.isdigit():
        raise ValueError(f"Malformed local index '{local_index}'.")
    return int(ordinal), int(sequence)


class ChunkRecord(BaseModel):
    """The unit of retrievable knowledge.

    Attributes:
        content:                 Markdown text body.
        category:                Document category.
        local_index:             "<categoryOrdinal>.<sequence>", unique within the category.
        global_index:            Process-wide monotonic id; the vector id is "chunk_<global_index>".
        embedding:               Vector of the current content, None until converted.
        embedding_generated_at:  When ``embedding`` was computed. Cleared with it.
        uploaded_to_pinecone:    True only while the vector index holds the current (content, embedding).
        remote_id_claimed:       True once a vector was stored under this global index. Edits keep it,
                                 so the chunk re-uploads under its old id. Not part of the wire format.
    """

    model_config = ConfigDict(populate_by_name=True)

    content: str
    category: ChunkCategory
    local_index: str = Field(alias="localIndex")
    global_index: int = Field(alias="globalIndex")
    embedding: list[float] | None = None
    embedding_generated_at: datetime | None = Field(default=None, alias="embeddingGeneratedAt")
    uploaded_to_pinecone: bool = Field(default=False, alias="uploadedToPinecone")
    remote_id_claimed: bool = Field(default=False, exclude=True)

    @property
    def vector_id(self) -> str:
        return f"chunk_{self.global_index}"

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    def clear_embedding(self) -> None:
        """Drop everything derived from the content."""
        self.embedding = None
        self.embedding_generated_at = None
        self.uploaded_to_pinecone = False


class ChunkView(BaseModel):
    """Chunk as returned to the operator: the embedding itself is reduced to its presence."""

    model_config = ConfigDict(populate_by_name=True)

    content: str
    category: ChunkCategory
    local_index: str = Field(serialization_alias="localIndex")
    global_index: int = Field(serialization_alias="globalIndex")
    has_embedding: bool = Field(serialization_alias="hasEmbedding")
    embedding_generated_at: datetime | None = Field(default=None, serialization_alias="embeddingGeneratedAt")
    uploaded_to_pinecone: bool = Field(serialization_alias="uploadedToPinecone")
    word_count: int = Field(serialization_alias="wordCount")

    @classmethod
    def from_record(cls, record: ChunkRecord) -> "ChunkView":
        return cls(
            content=record.content,
            category=record.category,
            local_index=record.local_index,
            global_index=record.global_index,
            has_embedding=record.embedding is not None,
            embedding_generated_at=record.embedding_generated_at,
            uploaded_to_pinecone=record.uploaded_to_pinecone,
            word_count=record.word_count,
        )
