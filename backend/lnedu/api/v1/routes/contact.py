# backend/lnedu/api/v1/routes/contact.py
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from lnedu.api.v1.deps import require_admin
from lnedu.core.logger import get_logger
from lnedu.database.session import get_db
from lnedu.models.enums import MessageStatus
from lnedu.models.user import User
from lnedu.schemas.contact import BlacklistIn, BulkReadIn, ContactIn, MessageStatusIn, ReplyIn
from lnedu.services import messages as svc
from lnedu.services.anti_spam import BLOCK, CHALLENGE, AntiSpamService, SpamSubmission, get_anti_spam
from lnedu.services.outbox import deliver_pending_background

log = get_logger("routes.contact")

router = APIRouter(tags=["contact"])

RETRY_AFTER_SECONDS = 3600


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else "127.0.0.1")


@router.post("/contact", status_code=status.HTTP_201_CREATED)
def contact(
    body: ContactIn,
    request: Request,
    tasks: BackgroundTasks,
    spam: AntiSpamService = Depends(get_anti_spam),
    db: Session = Depends(get_db),
):
    ip = client_ip(request)
    user_agent = request.headers.get("user-agent", "")
    honeypot = (body.model_extra or {}).get(spam.config.honeypot.field_name)

    check = spam.check_message(SpamSubmission(
        ip=ip,
        email=body.email,
        name=body.name,
        message=body.message,
        subject=body.subject,
        honeypot=None if honeypot in (None, "") else str(honeypot),
        user_agent=user_agent,
    ))

    if check.action == BLOCK:
        log.info(f"spam bloqueado de {ip}: {check.reasons}")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": "Requisição bloqueada por atividade suspeita", "retryAfter": RETRY_AFTER_SECONDS},
        )
    if check.action == CHALLENGE:
        log.info(f"captcha exigido para {ip}: {check.reasons}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Complete a verificação de segurança", "requiresCaptcha": True},
        )

    msg = svc.create_message(
        db,
        body.model_dump(exclude=set(body.model_extra or {})),
        ip=ip,
        user_agent=user_agent,
        spam_score=check.confidence,
    )
    db.commit()
    tasks.add_task(deliver_pending_background)
    return {
        "success": True,
        "messageId": msg.id,
        "message": "Mensagem enviada com sucesso! Retornaremos o contato em breve.",
    }


# -------------------- admin: mensagens --------------------
@router.get("/admin/messages")
def admin_list(
    status_: MessageStatus | None = Query(default=None, alias="status"),
    search: str | None = None,
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows, total = svc.list_messages(db, status=status_, search=search, skip=skip, take=take)
    return {"messages": [svc.message_to_dict(m) for m in rows], "total": total}


@router.get("/admin/messages/stats")
def admin_stats(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return svc.stats(db)


@router.patch("/admin/messages/bulk-read")
def admin_bulk_read(body: BulkReadIn, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    updated = svc.bulk_mark_read(db, body.messageIds)
    db.commit()
    return {"success": True, "updated": updated}


@router.put("/admin/messages/{message_id}/status")
def admin_status(
    message_id: int,
    body: MessageStatusIn,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    msg = svc.update_status(db, message_id, body.status)
    db.commit()
    db.refresh(msg)
    return svc.message_to_dict(msg)


@router.post("/admin/messages/{message_id}/reply")
def admin_reply(
    message_id: int,
    body: ReplyIn,
    tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    msg = svc.reply(db, message_id, body.content, admin)
    db.commit()
    db.refresh(msg)
    tasks.add_task(deliver_pending_background)
    return {"success": True, "message": svc.message_to_dict(msg)}


@router.delete("/admin/messages/{message_id}")
def admin_delete(message_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    svc.delete_message(db, message_id)
    db.commit()
    return {"success": True}


# -------------------- admin: anti-spam --------------------
@router.get("/admin/spam/stats")
def spam_stats(_: User = Depends(require_admin), spam: AntiSpamService = Depends(get_anti_spam)):
    return {**spam.get_stats(), "suspiciousIPs": spam.get_suspicious_ips()}


@router.get("/admin/spam/blacklist")
def spam_blacklist(_: User = Depends(require_admin), spam: AntiSpamService = Depends(get_anti_spam)):
    return {"blacklist": spam.get_blacklist()}


@router.post("/admin/spam/blacklist", status_code=status.HTTP_201_CREATED)
def spam_blacklist_add(
    body: BlacklistIn,
    _: User = Depends(require_admin),
    spam: AntiSpamService = Depends(get_anti_spam),
):
    spam.add_to_blacklist(body.ip)
    log.warning(f"IP {body.ip} adicionado à blacklist manualmente")
    return {"success": True, "ip": body.ip}


@router.delete("/admin/spam/blacklist/{ip}")
def spam_blacklist_remove(
    ip: str,
    _: User = Depends(require_admin),
    spam: AntiSpamService = Depends(get_anti_spam),
):
    spam.remove_from_blacklist(ip)
    return {"success": True, "ip": ip}
