from pydantic import BaseModel


class ScrollPage(BaseModel):
    """One page of a Qdrant scroll. ``next_page_offset`` is None on the last page."""

    points: list[dict] = []
    next_page_offset: str | int | None = None

    @classmethod
    def from_response(cls, data: dict) -> "ScrollPage":
        result = data.get("result") or {}
        return cls(points=result.get("points") or [], next_page_offset=result.get("next_page_offset"))
