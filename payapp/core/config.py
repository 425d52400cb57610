from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings

# .env at the project root: payapp/core/config.py -> payapp/core -> payapp -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

PAYAPP_API_URL = "https://api.payapp.kr/oapi/apiLoad.html"


class Settings(BaseSettings):
    # PayApp merchant account. userid/linkkey/linkval are also the shared
    # secrets PayApp echoes back in every feedback (callback) request.
    payapp_userid: str = ""
    payapp_linkkey: str = ""
    payapp_linkval: str = ""
    payapp_feedback_url: str = ""   # PayApp POSTs status changes here, e.g. https://example.com/api/payapp/callback
    payapp_return_url: str = ""     # Customer is sent here after the payment page
    payapp_api_url: str = PAYAPP_API_URL
    payapp_timeout: float = 30.0
    payapp_smsuse: str = "n"        # "y": PayApp also texts the payment link to the payer
    database_url: str = "sqlite:///./payapp.db"
    # CORS: comma separated origins, "*" allows all
    allowed_origins: str = "*"
    rate_limit_per_minute: int = 60
    # Required as X-Admin-Secret on cancel / rebill control when set
    admin_secret: str = ""
    log_level: str = "INFO"

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
        "frozen": True,
    }

    @field_validator("payapp_userid", "payapp_linkkey", "payapp_linkval", mode="before")
    @classmethod
    def strip_secret(cls, v: str | None) -> str:
        """Copy/paste whitespace would otherwise fail every callback."""
        return (v or "").strip()


class PayAppCredentials(BaseModel):
    """Merchant credentials shared by the gateway client and the callback check."""

    userid: str
    linkkey: str
    linkval: str
    feedback_url: str = ""
    return_url: str = ""

    model_config = {"frozen": True}

    @property
    def configured(self) -> bool:
        return bool(self.userid and self.linkkey and self.linkval)


settings = Settings()


@lru_cache
def get_credentials() -> PayAppCredentials:
    return PayAppCredentials(
        userid=settings.payapp_userid,
        linkkey=settings.payapp_linkkey,
        linkval=settings.payapp_linkval,
        feedback_url=settings.payapp_feedback_url,
        return_url=settings.payapp_return_url,
    )


def allowed_origins_list() -> list[str]:
    if not settings.allowed_origins or settings.allowed_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
