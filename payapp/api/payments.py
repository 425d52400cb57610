import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from sqlmodel import Session

from payapp.api.deps import get_gateway, require_admin
from payapp.core.config import PayAppCredentials, get_credentials, settings
from payapp.core.database import get_db
from payapp.core.exceptions import AuthenticationError, PersistenceError, ValidationError
from payapp.core.rate_limit import get_client_ip, limiter
from payapp.models import Order, OrderStatus, Subscription
from payapp.schemas import CancelRequest, PaymentRequest, RebillControlRequest, RebillRegisterRequest
from payapp.services import store
from payapp.services.callback import ACK_FAIL, ACK_SUCCESS, ACK_UNAUTHORIZED, authenticate, dispatch
from payapp.services.gateway import PayAppClient
from payapp.services.payments import cancel_payment, request_payment
from payapp.services.rebill import control_rebill, register_rebill

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payapp", tags=["payapp"])
_PAYMENT_RATE_LIMIT = f"{settings.rate_limit_per_minute}/minute"
MAX_PAGE_SIZE = 100


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _order_dict(order: Order) -> dict:
    return {
        "success": True,
        "orderId": order.id,
        "mulNo": order.mul_no,
        "status": order.status,
        "payState": order.pay_state,
        "amount": order.amount,
        "phone": order.phone,
        "productName": order.product_name,
        "memo": order.memo,
        "var1": order.var1,
        "var2": order.var2,
        "payType": order.pay_type,
        "payDate": order.pay_date,
        "createdAt": _iso(order.created_at),
        "updatedAt": _iso(order.updated_at),
    }


def _subscription_dict(sub: Subscription) -> dict:
    return {
        "success": True,
        "orderId": sub.order_id,
        "rebillNo": sub.rebill_no,
        "status": sub.status,
        "cycleType": sub.cycle_type,
        "cycleValue": sub.cycle_value,
        "expireDate": _iso(sub.expire_date),
        "amount": sub.amount,
        "phone": sub.phone,
        "productName": sub.product_name,
        "lastMulNo": sub.last_mul_no,
        "lastPayState": sub.last_pay_state,
        "lastPaidAt": sub.last_paid_at,
        "createdAt": _iso(sub.created_at),
        "updatedAt": _iso(sub.updated_at),
    }


async def _read_callback_payload(request: Request) -> dict[str, str]:
    """PayApp posts form data; JSON is accepted for proxies that re-encode it."""
    if "application/json" in (request.headers.get("content-type") or ""):
        try:
            data = await request.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return {}
        return {str(k): "" if v is None else str(v) for k, v in data.items()}
    form = await request.form()
    return {k: str(form.get(k) or "") for k in form}


# ---------- One-time payment ----------
@router.post("/request")
@limiter.limit(_PAYMENT_RATE_LIMIT)
def payapp_request(
    request: Request,
    body: PaymentRequest,
    db: Session = Depends(get_db),
    gateway: PayAppClient = Depends(get_gateway),
):
    """Opens a PayApp payment; the front-end sends the payer to payUrl."""
    order = request_payment(db, gateway, body)
    result = {"success": True, "orderId": order.id, "payUrl": order.pay_url, "mulNo": order.mul_no}
    if order.qr_url:
        result["qrUrl"] = order.qr_url
    return result


@router.post("/callback")
async def payapp_callback(
    request: Request,
    db: Session = Depends(get_db),
    credentials: PayAppCredentials = Depends(get_credentials),
):
    """PayApp feedback URL. Plain text answer: SUCCESS stops PayApp's retries."""
    payload = await _read_callback_payload(request)
    ip = get_client_ip(request)
    try:
        authenticate(payload, credentials)
    except AuthenticationError:
        log.warning("PayApp callback rejected: bad credentials (ip=%s mul_no=%s)", ip, payload.get("mul_no"))
        store.log_callback(db, payload, "unauthorized", ip)
        return PlainTextResponse(ACK_UNAUTHORIZED, status_code=401)
    try:
        result = dispatch(db, payload)
    except PersistenceError:
        log.error("PayApp callback not saved, PayApp will retry: mul_no=%s", payload.get("mul_no"))
        return PlainTextResponse(ACK_FAIL, status_code=500)
    store.log_callback(db, payload, result.outcome, ip)
    return PlainTextResponse(ACK_SUCCESS)


@router.get("/status/{order_id}")
def payapp_status(order_id: str, db: Session = Depends(get_db)):
    """order_id may be our ORDER_... id or PayApp's mul_no."""
    return _order_dict(store.get_order(db, order_id))


@router.get("/orders")
def payapp_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    status: str | None = None,
    db: Session = Depends(get_db),
):
    status = (status or "").strip() or None
    if status and status not in {s.value for s in OrderStatus}:
        raise ValidationError(f"Unknown status: {status}")
    limit = min(limit, MAX_PAGE_SIZE)
    orders, total = store.list_orders(db, status=status, page=page, limit=limit)
    return {
        "success": True,
        "orders": [_order_dict(o) for o in orders],
        "page": page,
        "limit": limit,
        "total": total,
    }


@router.post("/cancel")
def payapp_cancel(
    body: CancelRequest,
    _: None = Depends(require_admin),
    gateway: PayAppClient = Depends(get_gateway),
):
    mul_no = cancel_payment(gateway, body.mul_no, body.cancelmemo)
    return {"success": True, "mulNo": mul_no, "message": "Cancel requested."}


# ---------- Rebill (recurring) ----------
@router.post("/rebill/register")
@limiter.limit(_PAYMENT_RATE_LIMIT)
def payapp_rebill_register(
    request: Request,
    body: RebillRegisterRequest,
    db: Session = Depends(get_db),
    gateway: PayAppClient = Depends(get_gateway),
):
    sub = register_rebill(db, gateway, body)
    return {"success": True, "orderId": sub.order_id, "rebillNo": sub.rebill_no, "payUrl": sub.pay_url}


def _control(db: Session, gateway: PayAppClient, body: RebillControlRequest, action: str) -> dict:
    sub = control_rebill(db, gateway, body.rebill_no, action)
    return {"success": True, "rebillNo": sub.rebill_no, "status": sub.status}


@router.post("/rebill/cancel")
def payapp_rebill_cancel(
    body: RebillControlRequest,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway: PayAppClient = Depends(get_gateway),
):
    return _control(db, gateway, body, "cancel")


@router.post("/rebill/stop")
def payapp_rebill_stop(
    body: RebillControlRequest,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway: PayAppClient = Depends(get_gateway),
):
    return _control(db, gateway, body, "stop")


@router.post("/rebill/start")
def payapp_rebill_start(
    body: RebillControlRequest,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway: PayAppClient = Depends(get_gateway),
):
    return _control(db, gateway, body, "start")


@router.get("/rebill/{rebill_no}")
def payapp_rebill_status(rebill_no: str, db: Session = Depends(get_db)):
    return _subscription_dict(store.get_subscription(db, rebill_no))
