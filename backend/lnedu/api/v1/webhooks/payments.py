import hmac, hashlib, json
from fastapi import APIRouter, Header, HTTPException, Depends, status, Request
from sqlalchemy.orm import Session

from lnedu.core.config import settings
from lnedu.core.exceptions import DomainError
from lnedu.core.logger import get_logger
from lnedu.database.session import get_db
from lnedu.models.enums import WebhookEventStatus
from lnedu.models.webhook_event import WebhookEvent
from lnedu.schemas.checkout import PaymentWebhookIn
from lnedu.services.orders import process_asaas_event, process_payment_webhook

log = get_logger("webhooks")

router = APIRouter(tags=["webhooks"])

# Webhooks sempre respondem 200 quando o problema é no processamento:
# o gateway reenviaria em loop. A falha fica em webhook_events (status FAILED).

def verify_hmac(raw_body: bytes, signature: str | None) -> None:
    if not settings.WEBHOOK_SECRET:
        return
    if not signature:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing signature")
    mac = hmac.new(settings.WEBHOOK_SECRET.encode(), raw_body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(mac, signature):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid signature")

def verify_asaas_token(token: str | None) -> None:
    if not settings.ASAAS_WEBHOOK_TOKEN:
        return
    if not token or not hmac.compare_digest(token, settings.ASAAS_WEBHOOK_TOKEN):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid access token")

def _record(db: Session, *, source: str, event: str, reference, raw: bytes, payload, st: WebhookEventStatus, error: str | None = None) -> None:
    db.add(WebhookEvent(
        source=source,
        event=str(event or "unknown")[:64],
        reference=str(reference)[:64] if reference is not None else None,
        payload_hash=hashlib.sha256(raw).hexdigest(),
        payload=payload if isinstance(payload, dict) else {"raw": raw.decode(errors="replace")},
        status=st,
        error=error,
    ))
    db.commit()

def _dead_letter(db: Session, *, source: str, event: str, reference, raw: bytes, payload, error: Exception) -> None:
    db.rollback()
    msg = error.message if isinstance(error, DomainError) else str(error)
    try:
        _record(db, source=source, event=event, reference=reference, raw=raw, payload=payload,
                st=WebhookEventStatus.FAILED, error=msg)
    except Exception:
        db.rollback()
        log.exception(f"[{source}] não foi possível gravar o dead-letter")

def _parse(raw: bytes):
    try:
        return json.loads(raw.decode() or "null")
    except (UnicodeDecodeError, ValueError):
        return None

@router.post("/webhooks/payment")
async def payment_webhook(
    request: Request,
    x_signature: str | None = Header(default=None, alias="X-Signature"),
    db: Session = Depends(get_db),
):
    raw = await request.body()
    verify_hmac(raw, x_signature)

    payload = _parse(raw)
    log.info(f"[PAYMENT WEBHOOK] recebido: {payload}")
    order_id = payload.get("orderId") if isinstance(payload, dict) else None
    event = payload.get("status") if isinstance(payload, dict) else None

    try:
        data = PaymentWebhookIn.model_validate(payload)
        order, outcome = process_payment_webhook(db, data.orderId, data.status)
        db.commit()
        _record(db, source="payment", event=data.status, reference=data.orderId, raw=raw, payload=payload, st=outcome)
    except Exception as e:
        log.exception(f"[PAYMENT WEBHOOK] falha ao processar pedido {order_id}")
        _dead_letter(db, source="payment", event=event, reference=order_id, raw=raw, payload=payload, error=e)
        return {"success": False, "orderId": order_id}

    return {"success": True, "orderId": order.id, "result": outcome.value}

@router.post("/webhooks/asaas")
async def asaas_webhook(
    request: Request,
    asaas_access_token: str | None = Header(default=None, alias="asaas-access-token"),
    db: Session = Depends(get_db),
):
    verify_asaas_token(asaas_access_token)
    raw = await request.body()

    payload = _parse(raw)
    log.info(f"[ASAAS WEBHOOK] recebido: {payload}")
    body = payload if isinstance(payload, dict) else {}
    event = body.get("event")
    payment = body.get("payment") or {}
    reference = payment.get("externalReference") if isinstance(payment, dict) else None

    if not reference:
        log.info("[ASAAS WEBHOOK] sem payment/externalReference")
        _record(db, source="asaas", event=event, reference=None, raw=raw, payload=payload,
                st=WebhookEventStatus.IGNORED, error="sem externalReference")
        return {"received": True}

    try:
        _, outcome = process_asaas_event(db, event, reference)
        db.commit()
        _record(db, source="asaas", event=event, reference=reference, raw=raw, payload=payload, st=outcome)
    except Exception as e:
        log.exception(f"[ASAAS WEBHOOK] falha ao processar {event} para pedido {reference}")
        _dead_letter(db, source="asaas", event=event, reference=reference, raw=raw, payload=payload, error=e)

    return {"received": True}
