from pydantic import BaseModel, ConfigDict, Field

from shared.models.chat import Message
from shared.models.chunk import ChunkCategory


class AddChunkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    category: ChunkCategory
    # operator confirmed storing a chunk above the word limit
    confirm_long: bool = Field(default=False, alias="confirmLong")


class EditChunkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    category: ChunkCategory | None = None
    confirm_long: bool = Field(default=False, alias="confirmLong")


class SearchRequest(BaseModel):
    query: str


class ChatRequest(BaseModel):
    message: str
    history: list[Message] = []


class SandboxRunRequest(BaseModel):
    code: str
    credentials: dict[str, str] = {}
