"""Sandbox worker process.

Started by SandboxService once per run with a fresh interpreter. Reads
``{"code": ..., "credentials": {...}}`` as JSON from stdin, evaluates the
snippet against an explicit capability set and writes exactly one JSON line
to stdout: ``{"success": true, "output": [...]}`` or
``{"success": false, "error": "..."}``.

The worker does not enforce the wall-clock limit itself; the parent kills it.
Restricted builtins keep honest snippets inside the capability set, the
process boundary is what isolates the parent.
"""

import base64
import builtins
import heapq
import itertools
import json
import sys
import time
import urllib.parse

import httpx

FETCH_TIMEOUT_SECONDS = 4.0

SAFE_BUILTINS = {
    name: getattr(builtins, name)
    for name in (
        "abs", "all", "any", "bool", "bytes", "callable", "chr", "dict", "divmod", "enumerate",
        "filter", "float", "format", "frozenset", "hash", "hex", "int", "isinstance", "issubclass",
        "iter", "len", "list", "map", "max", "min", "next", "oct", "ord", "pow", "range", "repr",
        "reversed", "round", "set", "slice", "sorted", "str", "sum", "tuple", "zip",
        "ArithmeticError", "AssertionError", "AttributeError", "Exception", "IndexError", "KeyError",
        "LookupError", "NotImplementedError", "RuntimeError", "StopIteration", "TypeError",
        "ValueError", "ZeroDivisionError",
    )
}


def _to_jsonable(value):
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return repr(value)


class Console:
    """Console proxy. Every call appends ``[level, *args]`` to the output list."""

    def __init__(self, output: list):
        self._output = output

    def _append(self, level: str, args: tuple) -> None:
        self._output.append([level, *[_to_jsonable(arg) for arg in args]])

    def log(self, *args):
        self._append("log", args)

    def info(self, *args):
        self._append("info", args)

    def warn(self, *args):
        self._append("warn", args)

    def error(self, *args):
        self._append("error", args)

    def debug(self, *args):
        self._append("debug", args)


class Timers:
    """set_timeout/clear_timeout. Due callbacks run after the snippet body, in due order."""

    def __init__(self):
        self._queue: list = []
        self._ids = itertools.count(1)
        self._cancelled: set[int] = set()

    def set_timeout(self, callback, delay_ms: float = 0, *args) -> int:
        handle = next(self._ids)
        due = time.monotonic() + max(float(delay_ms), 0.0) / 1000
        heapq.heappush(self._queue, (due, handle, callback, args))
        return handle

    def clear_timeout(self, handle: int) -> None:
        self._cancelled.add(handle)

    def run_pending(self) -> None:
        while self._queue:
            due, handle, callback, args = heapq.heappop(self._queue)
            if handle in self._cancelled:
                continue
            wait = due - time.monotonic()
            if wait > 0:
                time.sleep(wait)
            callback(*args)


class Buffer:
    """Byte/string conversions between utf-8, base64 and hex."""

    @staticmethod
    def from_string(value: str, encoding: str = "utf-8") -> bytes:
        if encoding == "base64":
            return base64.b64decode(value)
        if encoding == "hex":
            return bytes.fromhex(value)
        return value.encode(encoding)

    @staticmethod
    def to_string(value: bytes, encoding: str = "utf-8") -> str:
        if encoding == "base64":
            return base64.b64encode(value).decode("ascii")
        if encoding == "hex":
            return value.hex()
        return value.decode(encoding)


class URL:
    """Minimal URL utility backed by urllib.parse."""

    def __init__(self, url: str, base: str | None = None):
        self.href = urllib.parse.urljoin(base, url) if base else url
        parts = urllib.parse.urlsplit(self.href)
        self.protocol = f"{parts.scheme}:" if parts.scheme else ""
        self.host = parts.netloc
        self.hostname = parts.hostname or ""
        self.pathname = parts.path or "/"
        self.search = f"?{parts.query}" if parts.query else ""
        self.hash = f"#{parts.fragment}" if parts.fragment else ""
        self.search_params = dict(urllib.parse.parse_qsl(parts.query))

    @staticmethod
    def encode(params: dict) -> str:
        return urllib.parse.urlencode(params)

    def __str__(self) -> str:
        return self.href


class FetchResponse:
    def __init__(self, response: httpx.Response):
        self.status = response.status_code
        self.ok = response.is_success
        self.headers = dict(response.headers)
        self._response = response

    def text(self) -> str:
        return self._response.text

    def json(self):
        return self._response.json()


class Fetch:
    """Network proxy. With an api_key credential every request carries a bearer header."""

    def __init__(self, api_key: str | None):
        self._api_key = api_key
        self._client = httpx.Client(timeout=FETCH_TIMEOUT_SECONDS, follow_redirects=True)

    def __call__(self, url: str, method: str = "GET", headers: dict | None = None, json=None, data=None, params=None) -> FetchResponse:
        request_headers = dict(headers or {})
        if self._api_key:
            request_headers["Authorization"] = f"Bearer {self._api_key}"
        response = self._client.request(method.upper(), str(url), headers=request_headers, json=json, data=data, params=params)
        return FetchResponse(response)

    def close(self) -> None:
        self._client.close()


class SandboxCapabilities:
    """The complete set of names a snippet can reach, bound to one evaluation."""

    def __init__(self, credentials: dict):
        self.output: list = []
        self.console = Console(self.output)
        self.timers = Timers()
        api_key = credentials.get("api_key") or credentials.get("apiKey")
        self.fetch = Fetch(api_key)

    def as_globals(self) -> dict:
        return {
            "__builtins__": {**SAFE_BUILTINS, "print": self.console.log},
            "__name__": "__sandbox__",
            "console": self.console,
            "fetch": self.fetch,
            "set_timeout": self.timers.set_timeout,
            "clear_timeout": self.timers.clear_timeout,
            "Buffer": Buffer,
            "URL": URL,
        }

    def close(self) -> None:
        self.fetch.close()


def evaluate(code: str, credentials: dict) -> dict:
    capabilities = SandboxCapabilities(credentials)
    try:
        compiled = compile(code, "<snippet>", "exec")
        exec(compiled, capabilities.as_globals())
        capabilities.timers.run_pending()
    except SyntaxError as exc:
        return {"success": False, "error": f"SyntaxError: {exc.msg} (line {exc.lineno})"}
    except Exception as exc:
        return {"success": False, "error": f"{type(exc).__name__}: {exc}"}
    finally:
        capabilities.close()
    return {"success": True, "output": capabilities.output}


def main() -> None:
    result_stream = sys.stdout
    # anything the snippet manages to write goes to stderr, stdout carries only the result line
    sys.stdout = sys.stderr
    try:
        request = json.loads(sys.stdin.read() or "{}")
        result = evaluate(str(request.get("code", "")), dict(request.get("credentials") or {}))
    except (ValueError, TypeError) as exc:
        result = {"success": False, "error": f"Invalid sandbox request: {exc}"}
    except SystemExit:
        result = {"success": False, "error": "Snippet attempted to exit the interpreter."}
    result_stream.write(json.dumps(result) + "\n")
    result_stream.flush()


if __name__ == "__main__":
    main()
