"""Pydantic models for chat turns and retrieval references."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Reference(BaseModel):
    """A retrieval result attached to an assistant reply. Never persisted."""

    model_config = ConfigDict(populate_by_name=True)

    text: str
    # similarity score from the index, a ranking key rather than a probability
    relevance_score: float = Field(alias="relevanceScore")
    source_label: str = Field(default="Unknown", alias="sourceLabel")


class Message(BaseModel):
    """A single conversation turn. Inbound role "bot" is normalised to "assistant"."""

    role: Literal["user", "assistant"]
    content: str
    references: list[Reference] | None = None

    @field_validator("role", mode="before")
    @classmethod
    def _normalise_role(cls, value: str) -> str:
        if isinstance(value, str) and value.strip().lower() == "bot":
            return "assistant"
        return value


class ChatResult(BaseModel):
    reply: str
    references: list[Reference] = []
