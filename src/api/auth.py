import secrets

from fastapi import Header, HTTPException, Request


def verify_api_key(request: Request, x_api_key: str | None = Header(default=None)) -> str:
    """Checks X-API-Key against the configured key; shared by every non-health route."""
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    expected: str = request.app.state.settings.api.key
    if not secrets.compare_digest(x_api_key.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid API key")

    return x_api_key


def get_captain_id(x_captain_id: str = Header(..., min_length=1)) -> str:
    """Captain identity forwarded by the authenticating gateway in X-Captain-Id."""
    return x_captain_id
