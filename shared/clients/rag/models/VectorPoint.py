"""VectorPoint model: one chunk vector plus the metadata stored next to it in the index."""

import time

from pydantic import BaseModel, ConfigDict, Field


class ChunkVectorMetadata(BaseModel):
    """Metadata stored alongside each chunk vector.

    The field names are the wire names kept in the index, so rehydrate can
    rebuild a ChunkRecord from them.

    Attributes:
        text:          Chunk content.
        category:      Category value (e.g. "faq").
        chunk_id:      Local index, "<categoryOrdinal>.<sequence>".
        global_index:  Global index; also encoded in the vector id.
        timestamp:     Upload time in epoch milliseconds.
        source:        Optional human-readable source label shown with references.
    """

    model_config = ConfigDict(populate_by_name=True)

    text: str
    category: str
    chunk_id: str = Field(alias="chunkId")
    global_index: int = Field(alias="globalIndex")
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))
    source: str | None = None

    def to_payload(self) -> dict:
        # vector stores reject null metadata values
        return self.model_dump(by_alias=True, exclude_none=True)


class VectorPoint(BaseModel):
    """A vector ready to be upserted. ``id`` is always "chunk_<globalIndex>"."""

    id: str
    values: list[float]
    metadata: ChunkVectorMetadata
