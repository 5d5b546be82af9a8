"""Error taxonomy shared by all services.

Every error carries a machine-readable ``kind`` and a generic, user-safe
``public_message``. The original exception text stays in ``str(error)`` for
logging only and is never sent back to a caller.
"""


class RAGBridgeError(Exception):
    """Base class for all errors raised by the chunk RAG bridge."""

    kind: str = "internal_error"
    public_message: str = "The request could not be processed."
    status_code: int = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.public_message
        super().__init__(self.message)

    def to_response(self) -> dict:
        """Returns the user-visible error body: generic text plus the error kind."""
        return {"error": self.public_message, "kind": self.kind}


class ValidationError(RAGBridgeError):
    """Empty input or malformed request."""

    kind = "validation_error"
    public_message = "The request is invalid."
    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message)
        # validation messages never contain internal detail, so they may be shown
        self.public_message = self.message


class WordLimitExceededError(ValidationError):
    """A chunk exceeds the configured word limit and was not confirmed by the operator."""

    kind = "word_limit_exceeded"
    status_code = 409

    def __init__(self, word_count: int, limit: int):
        self.word_count = word_count
        self.limit = limit
        super().__init__(
            f"Chunk has {word_count} words which exceeds the limit of {limit}. "
            "Resend with confirmation to store it anyway."
        )

    def to_response(self) -> dict:
        body = super().to_response()
        body.update({"word_count": self.word_count, "limit": self.limit})
        return body


class EmbeddingError(RAGBridgeError):
    """Transport or engine failure while generating an embedding."""

    kind = "embedding_error"
    public_message = "Failed to generate embedding."
    status_code = 502


class ChatError(RAGBridgeError):
    """The completion engine failed to produce a reply."""

    kind = "chat_error"
    public_message = "There was an error processing your request."
    status_code = 502


class SyncError(RAGBridgeError):
    """Upload, delete or rehydrate against the vector index failed."""

    kind = "sync_error"
    public_message = "Failed to synchronise with the vector database."
    status_code = 502


class SandboxError(RAGBridgeError):
    """Snippet timed out or raised inside the sandbox."""

    kind = "sandbox_error"
    public_message = "Snippet execution failed."
    status_code = 504


class SignatureError(RAGBridgeError):
    """Webhook signature verification failed."""

    kind = "signature_error"
    public_message = "Invalid request signature."
    status_code = 401
