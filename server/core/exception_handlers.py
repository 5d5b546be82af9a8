from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.exceptions.errors import RAGBridgeError, ValidationError


async def handle_bridge_error(request: Request, exc: RAGBridgeError) -> JSONResponse:
    """Map the error taxonomy to a generic body; internal detail goes to the log only."""
    request.app.state.logging.error(
        "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


def _describe_first_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Malformed request."
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"Malformed request: {location or 'body'}: {first.get('msg', 'invalid value')}."


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Unparseable or incomplete request bodies get the same 400 body as every other validation error."""
    request.app.state.logging.warning(
        "Malformed request on %s %s: %s", request.method, request.url.path, exc.errors()
    )
    error = ValidationError(_describe_first_error(exc))
    return JSONResponse(status_code=error.status_code, content=error.to_response())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RAGBridgeError, handle_bridge_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
