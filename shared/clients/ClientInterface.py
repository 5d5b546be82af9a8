import time
from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes, RequestContent

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientResponseError(Exception):
    """Raised when a backend answers with a non-2xx status."""

    def __init__(self, url: str, status_code: int):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Request to {url} failed with status {status_code}")


class ClientInterface(ABC):
    """Base class of every external collaborator (embedding, completion, vector index, messaging).

    Engine settings live in ``<CLIENT_TYPE>_<ENGINE>_<KEY>`` variables. They are
    resolved once on construction, so a misconfigured engine fails at startup
    instead of on the first request, and are read back through get_config().
    The HTTP client itself only exists between boot() and close().
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self._config: dict[str, Any] = self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> dict[str, Any]:
        """Resolve every setting listed by _get_required_config().

        Returns:
            dict[str, Any]: Resolved values keyed by the engine-relative key (e.g. "BASE_URL").

        Raises:
            ValueError: If a mandatory setting is missing or a value has the wrong type.
        """
        resolved: dict[str, Any] = {}
        for config in self._get_required_config():
            value = self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)
            resolved[config.env_key.upper()] = value
            self.logging.debug(
                "%s client '%s': %s=%s",
                self.get_client_type().upper(),
                self.get_engine_name(),
                self._get_config_key_name(config.env_key),
                "***" if config.secret else value,
            )
        return resolved

    def is_booted(self) -> bool:
        return self._client is not None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        """
        Returns the client family, used as the first part of every setting name. E.g. "rag"
        """
        pass

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """
        Returns the engine, used as the second part of every setting name. E.g. "Pinecone"
        """
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns the settings this engine reads. Entries without default are mandatory.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """Read one engine-scoped setting from the environment.

        Args:
            raw_key (str): Engine-relative key, e.g. "BASE_URL".
            default (Any): Fallback when the variable is unset. None makes it mandatory.
            val_type (str): "string", "number", "int" or "bool".

        Raises:
            ValueError: If the type is unsupported or a mandatory value is missing.
        """
        key = self._get_config_key_name(raw_key)
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "int": self._helper_config.get_int_val,
            "bool": self._helper_config.get_bool_val,
        }
        if val_type not in readers:
            raise ValueError(
                f"Unsupported config value type '{val_type}' for {key} "
                f"in {self.get_client_type().upper()} client '{self.get_engine_name()}'."
            )
        return readers[val_type](key, default=default)

    def get_config(self, raw_key: str) -> Any:
        """Return a setting resolved at construction time."""
        return self._config[raw_key.upper()]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        """Bearer authentication from the engine's API_KEY setting, if the engine has one."""
        api_key = self._config.get("API_KEY")
        return {"Authorization": f"Bearer {api_key}"} if api_key else {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self.get_config("BASE_URL")

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """
        Returns a cheap GET endpoint that answers 2xx while the backend is usable. E.g. "/models"
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Create the HTTP client. Tests pass an httpx.MockTransport as ``transport``."""
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send one request to the backend.

        Args:
            method: HTTP method.
            content: Raw body. Takes precedence over ``json``.
            json: JSON-serialisable body.
            params: URL query parameters.
            endpoint: Path appended to the base URL.
            additional_headers: Extra headers, override the auth header on conflict.
            raise_on_error: Raise ClientResponseError on a non-2xx status.

        Raises:
            Exception: If the client has not been booted.
            ClientResponseError: On a non-2xx status when raise_on_error is True.
            httpx.HTTPError: On transport failures (timeouts, refused connections).
        """
        if self._client is None:
            raise Exception(f"{self.get_client_type().upper()} client not booted. Call boot() before making requests.")

        endpoint = endpoint.strip()
        url = self._get_base_url().rstrip("/") + ("/" + endpoint.lstrip("/") if endpoint else "")
        headers = {**self._get_auth_header(), **(additional_headers or {})}

        body: dict = {}
        if content is not None:
            body["content"] = content
        elif json is not None:
            body["json"] = json

        started = time.monotonic()
        response = await self._client.request(method, url, headers=headers, params=params, timeout=self.timeout, **body)
        self.logging.debug(
            "%s %s -> %d (%.0f ms)", method, url, response.status_code, (time.monotonic() - started) * 1000
        )

        if raise_on_error and not response.is_success:
            self.logging.error("Request to %s failed with status %d: %s", url, response.status_code, response.text[:200])
            raise ClientResponseError(url, response.status_code)
        return response

    async def do_request_json(
        self,
        method: str,
        endpoint: str,
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        additional_headers: dict | None = None,
    ) -> dict:
        """Send a request that must succeed and return its JSON body.

        Raises:
            ClientResponseError: On a non-2xx status.
            ValueError: If the body is not a JSON object.
        """
        response = await self.do_request(
            method=method,
            endpoint=endpoint,
            json=json,
            params=params,
            additional_headers=additional_headers,
            raise_on_error=True,
        )
        data = response.json() if response.content else {}
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object from {endpoint}, got {type(data).__name__}.")
        return data
