from pydantic import BaseModel, ConfigDict, Field

from shared.models.chat import Reference
from shared.models.chunk import ChunkView


class ChunkListResponse(BaseModel):
    chunks: list[ChunkView]
    total: int


class DeleteChunkResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    local_index: str = Field(serialization_alias="localIndex")
    global_index: int = Field(serialization_alias="globalIndex")
    remote_deleted: bool = Field(serialization_alias="remoteDeleted")


class EmbedAllResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    embedded_count: int = Field(serialization_alias="embeddedCount")
    batch_count: int = Field(serialization_alias="batchCount")


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uploaded_count: int = Field(serialization_alias="uploadedCount")
    start_index: int | None = Field(default=None, serialization_alias="startIndex")
    end_index: int | None = Field(default=None, serialization_alias="endIndex")


class RehydrateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chunk_count: int = Field(serialization_alias="chunkCount")
    next_global_index: int = Field(serialization_alias="nextGlobalIndex")


class SearchResponse(BaseModel):
    query: str
    results: list[Reference]
    total: int
