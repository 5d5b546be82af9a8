"""Environment-backed settings for the chunk RAG bridge.

Every accessor applies the same rule: an unset or blank variable falls back to
``default``; without a default the variable is mandatory and a ValueError is
raised. Names are case-insensitive, "chunk_word_limit" reads CHUNK_WORD_LIMIT.
"""

import logging
import os

_TRUTHY = ("true", "1", "yes")


class HelperConfig:

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _lookup(self, key: str, default: object | None) -> str | None:
        # None means "use the default"
        name = key.upper()
        value = (os.getenv(name) or "").strip()
        if value:
            return value
        if default is None:
            raise ValueError(f"Environment variable '{name}' is not set.")
        return None

    def get_string_val(self, key: str, default: str | None = None) -> str:
        value = self._lookup(key, default)
        return default if value is None else value

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a number. "0.7" gives a float, "500" an int.

        Raises:
            ValueError: If the variable is mandatory and missing, or not numeric.
        """
        value = self._lookup(key, default)
        if value is None:
            return default
        try:
            return float(value) if "." in value else int(value)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{value}'.")

    def get_int_val(self, key: str, default: int | None = None, minimum: int | None = None) -> int:
        """Read a whole number with an optional lower bound (CHUNK_WORD_LIMIT, EMBED_DIMENSIONS, SANDBOX_TIMEOUT_MS).

        Raises:
            ValueError: If the value has a fraction or is below ``minimum``.
        """
        value = self.get_number_val(key, default=default)
        if value != int(value):
            raise ValueError(f"Environment variable '{key.upper()}' must be an integer, got '{value}'.")
        value = int(value)
        if minimum is not None and value < minimum:
            raise ValueError(f"Environment variable '{key.upper()}' must be >= {minimum}, got {value}.")
        return value

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        value = self._lookup(key, default)
        return default if value is None else value.lower() in _TRUTHY

    def get_secret_val(self, key: str) -> bytes:
        """Mandatory secret as bytes, ready for HMAC. Never logged."""
        return self.get_string_val(key).encode("utf-8")

    def get_logger(self) -> logging.Logger:
        return self._logger
