import asyncio
import json
import os
import sys
from pathlib import Path

from shared.exceptions.errors import SandboxError
from shared.helper.HelperConfig import HelperConfig
from shared.models.sandbox import SandboxResult

DEFAULT_TIMEOUT_MS = 5000
WORKER_PATH = Path(__file__).with_name("sandbox_worker.py")

# the worker must not inherit API keys from the server environment
_WORKER_ENV_KEYS = ("PATH", "SYSTEMROOT", "LANG", "LC_ALL", "SSL_CERT_FILE", "SSL_CERT_DIR", "HTTP_PROXY", "HTTPS_PROXY", "NO_PROXY")


class SandboxService:
    """Runs untrusted Python snippets in a short-lived worker process.

    Each run gets a fresh interpreter, its own capability set and a hard
    wall-clock limit (SANDBOX_TIMEOUT_MS). Whatever happens inside the worker
    is reported through the SandboxResult, do_run() itself never raises.
    """

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()
        self.timeout_ms = helper_config.get_int_val("SANDBOX_TIMEOUT_MS", default=DEFAULT_TIMEOUT_MS, minimum=1)

    async def do_run(self, code: str, credentials: dict | None = None) -> SandboxResult:
        """Execute a snippet and collect its console output.

        Args:
            code (str): Python source of the snippet.
            credentials (dict | None): Optional credentials; ``api_key`` is sent as
                bearer token on every fetch() the snippet makes.

        Returns:
            SandboxResult: ``output`` on success, ``error`` on timeout, exception or crash.
        """
        try:
            output = await self._execute(code, credentials or {})
        except SandboxError as exc:
            self.logging.warning("Sandbox run failed: %s", exc.message)
            return SandboxResult.failed(exc.message)
        self.logging.debug("Sandbox run finished with %d output entries.", len(output))
        return SandboxResult.ok(output)

    async def _execute(self, code: str, credentials: dict) -> list:
        payload = json.dumps({"code": code, "credentials": credentials}).encode("utf-8")
        try:
            process = await asyncio.create_subprocess_exec(
                sys.executable, str(WORKER_PATH),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._worker_env(),
            )
        except OSError as exc:
            raise SandboxError(f"Could not start sandbox worker: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(payload), timeout=self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise SandboxError(f"Execution timed out after {self.timeout_ms} ms.")
        finally:
            # timeout or cancellation of the caller
            if process.returncode is None:
                await self._kill(process)

        if stderr:
            self.logging.debug("Sandbox worker stderr: %s", stderr.decode("utf-8", errors="replace").strip())
        return self._parse_result(stdout, process.returncode)

    def _parse_result(self, stdout: bytes, returncode: int | None) -> list:
        lines = stdout.decode("utf-8", errors="replace").strip().splitlines()
        if not lines:
            raise SandboxError(f"Sandbox worker exited with code {returncode} and no result.")
        try:
            result = json.loads(lines[-1])
        except ValueError as exc:
            raise SandboxError(f"Unreadable sandbox worker output: {exc}") from exc
        if not isinstance(result, dict):
            raise SandboxError("Unreadable sandbox worker output.")
        if not result.get("success"):
            raise SandboxError(str(result.get("error") or "Snippet failed without an error message."))
        output = result.get("output")
        return output if isinstance(output, list) else []

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()

    @staticmethod
    def _worker_env() -> dict:
        return {key: os.environ[key] for key in _WORKER_ENV_KEYS if key in os.environ}
