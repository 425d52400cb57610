import hmac

from fastapi import Depends, Header

from payapp.core.config import PayAppCredentials, get_credentials, settings
from payapp.core.exceptions import Forbidden
from payapp.services.gateway import PayAppClient


def get_gateway(credentials: PayAppCredentials = Depends(get_credentials)) -> PayAppClient:
    return PayAppClient(
        credentials,
        api_url=settings.payapp_api_url,
        timeout=settings.payapp_timeout,
        smsuse=settings.payapp_smsuse,
    )


def require_admin(x_admin_secret: str | None = Header(None, alias="X-Admin-Secret")) -> None:
    """Cancel / rebill control. Open when ADMIN_SECRET is empty (browser widgets call these directly)."""
    expected = (settings.admin_secret or "").strip()
    if not expected:
        return
    if not hmac.compare_digest((x_admin_secret or "").encode("utf-8"), expected.encode("utf-8")):
        raise Forbidden("Unauthorized.")
