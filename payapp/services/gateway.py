"""
PayApp API client. Every command is a form-encoded POST to one endpoint and
the answer is form-encoded too (state=1&mul_no=...&payurl=...), never JSON.
"""
import logging
from dataclasses import dataclass
from http.client import HTTPException
from typing import Callable
from urllib.parse import parse_qsl, urlencode
from urllib.request import Request as UrlRequest, urlopen

from payapp.core.config import PAYAPP_API_URL, PayAppCredentials
from payapp.core.exceptions import GatewayRejected, GatewayUnreachable

logger = logging.getLogger(__name__)

PAYAPP_TIMEOUT = 30.0

# (url, body, timeout) -> raw response body
Transport = Callable[[str, bytes, float], bytes]

REBILL_COMMANDS = {
    "cancel": "rebillCancel",
    "stop": "rebillStop",
    "start": "rebillStart",
}


def encode_form(params: dict[str, object]) -> bytes:
    """None values are left out; everything else is sent as str."""
    return urlencode({k: str(v) for k, v in params.items() if v is not None}).encode("utf-8")


def decode_form(raw: bytes) -> dict[str, str]:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        # Older PayApp accounts answer in EUC-KR
        text = raw.decode("euc-kr", errors="replace")
    return dict(parse_qsl(text.strip(), keep_blank_values=True))


def urlopen_transport(url: str, body: bytes, timeout: float) -> bytes:
    req = UrlRequest(
        url,
        data=body,
        method="POST",
        headers={"Content-Type": "application/x-www-form-urlencoded; charset=utf-8"},
    )
    with urlopen(req, timeout=timeout) as resp:
        return resp.read()


@dataclass(frozen=True)
class PaymentIssued:
    mul_no: str
    pay_url: str
    qr_url: str | None = None


@dataclass(frozen=True)
class RebillIssued:
    rebill_no: str
    pay_url: str


class PayAppClient:
    def __init__(
        self,
        credentials: PayAppCredentials,
        api_url: str = PAYAPP_API_URL,
        timeout: float = PAYAPP_TIMEOUT,
        smsuse: str = "n",
        transport: Transport | None = None,
    ):
        self.credentials = credentials
        self.api_url = api_url
        self.timeout = timeout
        self.smsuse = smsuse
        self._transport = transport or urlopen_transport

    def _call(self, cmd: str, params: dict[str, object]) -> dict[str, str]:
        body = encode_form({"cmd": cmd, "userid": self.credentials.userid, **params})
        try:
            raw = self._transport(self.api_url, body, self.timeout)
        except (OSError, HTTPException) as e:
            # Timeouts included: PayApp may or may not have acted, so never retry here
            logger.exception("PayApp %s unreachable: %s", cmd, e)
            raise GatewayUnreachable(f"Could not reach PayApp: {str(e)[:80]}") from e
        result = decode_form(raw)
        if result.get("state") != "1":
            message = result.get("errorMessage") or "PayApp rejected the request."
            logger.warning("PayApp %s rejected: errno=%s message=%s", cmd, result.get("errno"), message)
            raise GatewayRejected(message, code=result.get("errno") or None)
        logger.info("PayApp %s ok", cmd)
        return result

    def _feedback_params(self) -> dict[str, object]:
        return {
            "feedbackurl": self.credentials.feedback_url or None,
            "returnurl": self.credentials.return_url or None,
            "smsuse": self.smsuse,
            # PayApp re-sends the feedback until it reads SUCCESS
            "checkretry": "y",
        }

    def issue_payment(
        self,
        *,
        amount: int,
        phone: str,
        product_name: str,
        memo: str | None = None,
        var1: str | None = None,
        var2: str | None = None,
        openpaytype: str | None = None,
        skip_cstpage: str | None = None,
    ) -> PaymentIssued:
        result = self._call(
            "payrequest",
            {
                "goodname": product_name,
                "price": amount,
                "recvphone": phone,
                "memo": memo,
                "var1": var1,
                "var2": var2,
                "openpaytype": openpaytype,
                "skip_cstpage": skip_cstpage,
                **self._feedback_params(),
            },
        )
        return PaymentIssued(
            mul_no=result.get("mul_no", ""),
            pay_url=result.get("payurl", ""),
            qr_url=result.get("qrurl") or None,
        )

    def issue_rebill(
        self,
        *,
        amount: int,
        phone: str,
        product_name: str,
        cycle_type: str,
        cycle_value: int | None,
        expire_date: str,
        memo: str | None = None,
        var1: str | None = None,
        var2: str | None = None,
        openpaytype: str | None = None,
    ) -> RebillIssued:
        result = self._call(
            "rebillRegist",
            {
                "goodname": product_name,
                "goodprice": amount,
                "recvphone": phone,
                "memo": memo,
                "rebillCycleType": cycle_type,
                "rebillCycleMonth": cycle_value if cycle_type == "Month" else None,
                "rebillCycleWeek": cycle_value if cycle_type == "Week" else None,
                "rebillExpire": expire_date,
                "var1": var1,
                "var2": var2,
                "openpaytype": openpaytype,
                **self._feedback_params(),
            },
        )
        return RebillIssued(
            rebill_no=result.get("rebill_no", ""),
            pay_url=result.get("payurl", ""),
        )

    def cancel_payment(self, mul_no: str, memo: str | None = None) -> dict[str, str]:
        # Full cancel only
        return self._call(
            "paycancel",
            {
                "linkkey": self.credentials.linkkey,
                "mul_no": mul_no,
                "cancelmemo": memo or "Cancelled by merchant",
                "partcancel": "0",
            },
        )

    def rebill_control(self, rebill_no: str, action: str) -> dict[str, str]:
        if action not in REBILL_COMMANDS:
            raise ValueError(f"Unknown rebill action: {action}")
        return self._call(
            REBILL_COMMANDS[action],
            {"linkkey": self.credentials.linkkey, "rebill_no": rebill_no},
        )
