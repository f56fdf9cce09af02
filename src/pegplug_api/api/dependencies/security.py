import hmac

from fastapi import Header, HTTPException, status

from pegplug_api.core.settings import settings


async def require_service_api_key(x_api_key: str = Header("", alias="X-API-Key")) -> None:
    """Merchant POS and operator calls carry the shared service key; open when none is configured."""

    expected = settings.session_api_key
    if not expected:
        return

    if not hmac.compare_digest(x_api_key.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid service API key",
        )
