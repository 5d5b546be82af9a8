from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import SandboxRunRequest
from shared.models.sandbox import SandboxResult

router = APIRouter(prefix="/sandbox", tags=["sandbox"])


@router.post("/run")
async def run_snippet(
    request: Request,
    body: SandboxRunRequest,
    _: None = Depends(verify_api_key),
) -> SandboxResult:
    """Run a Python snippet in an isolated worker. Failures are reported in the body with status 200."""
    sandbox_service = request.app.state.sandbox_service
    return await sandbox_service.do_run(body.code, body.credentials)
