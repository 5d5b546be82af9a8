import hmac

from fastapi import Header, HTTPException, Request


async def verify_api_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Verify the X-Api-Key header against the configured API key.

    Args:
        request (Request): The FastAPI request object (provides app.state).
        x_api_key (str | None): The value of the X-Api-Key header.

    Raises:
        HTTPException: 401 if the key is missing or does not match.
    """
    helper_config = request.app.state.helper_config
    expected_key = helper_config.get_string_val("API_SERVER_API_KEY")
    if not x_api_key or not hmac.compare_digest(x_api_key.encode("utf-8"), expected_key.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


async def verify_messaging_signature(request: Request) -> bytes:
    """Verify the signature of an inbound messaging webhook and return the raw body.

    The signature covers the body bytes exactly as received, so the body is
    read here, before any JSON parsing.

    Raises:
        HTTPException: 404 if no messaging engine is configured.
        SignatureError: If the signature or its timestamp is invalid.
    """
    messaging_client = request.app.state.messaging_client
    if messaging_client is None:
        raise HTTPException(status_code=404, detail="Messaging integration is not configured")
    raw_body = await request.body()
    headers = {key.lower(): value for key, value in request.headers.items()}
    messaging_client.verify_request(headers, raw_body)
    return raw_body
