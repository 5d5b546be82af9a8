"""Pydantic models for the sandboxed execution gateway."""

from typing import Any

from pydantic import BaseModel, model_validator


class SandboxResult(BaseModel):
    """Outcome of a single snippet run.

    Exactly one of ``output`` (on success) or ``error`` (on failure) is set.
    Each output entry is ``[level, *args]``, e.g. ``["log", "hi"]``.
    """

    success: bool
    output: list[list[Any]] | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _one_of_output_or_error(self) -> "SandboxResult":
        if self.success and (self.output is None or self.error is not None):
            raise ValueError("A successful run carries output and no error.")
        if not self.success and (not self.error or self.output is not None):
            raise ValueError("A failed run carries a non-empty error and no output.")
        return self

    @classmethod
    def ok(cls, output: list[list[Any]]) -> "SandboxResult":
        return cls(success=True, output=output)

    @classmethod
    def failed(cls, error: str) -> "SandboxResult":
        return cls(success=False, error=error or "Unknown sandbox error.")
