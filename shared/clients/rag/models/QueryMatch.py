from typing import Any

from pydantic import BaseModel


class QueryMatch(BaseModel):
    """One ranked match of a similarity query, normalised across vector stores.

    Attributes:
        id:        Vector id ("chunk_<globalIndex>").
        score:     Similarity score as reported by the index (higher is closer).
        metadata:  Raw metadata dict, may be empty when not requested.
        values:    Vector values, only present when requested.
    """

    id: str
    score: float = 0.0
    metadata: dict[str, Any] = {}
    values: list[float] | None = None
