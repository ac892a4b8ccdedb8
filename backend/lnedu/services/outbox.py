# backend/lnedu/services/outbox.py
"""
Fila de e-mails persistida (email_outbox).

enqueue_email() só adiciona a linha na sessão do chamador: o e-mail sai
junto com o commit da operação que o gerou. deliver_pending() drena a fila
via SMTP; chamado em BackgroundTasks pelas rotas e pelo scripts/send_outbox.py.
"""
from __future__ import annotations

import smtplib
from datetime import datetime, timedelta, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from lnedu.core.config import settings
from lnedu.core.logger import get_logger
from lnedu.models.enums import OutboxStatus
from lnedu.models.outbox import EmailOutbox

log = get_logger("outbox")

MAX_ATTEMPTS = 5
CLAIM_TIMEOUT = timedelta(minutes=10)


def enqueue_email(db: Session, to_addr: str, subject: str, html: str, *, reply_to: str | None = None) -> EmailOutbox:
    row = EmailOutbox(to_addr=to_addr, subject=subject, html=html, reply_to=reply_to)
    db.add(row)
    return row


def notify_admins(db: Session, subject: str, html: str, *, reply_to: str | None = None) -> list[EmailOutbox]:
    return [enqueue_email(db, addr, subject, html, reply_to=reply_to) for addr in settings.ADMIN_EMAILS]


def send_email(to_addr: str, subject: str, html: str, reply_to: str | None = None) -> None:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to_addr
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.attach(MIMEText(html, "html"))

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        server.starttls()
        if settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.sendmail(settings.EMAIL_FROM, [to_addr], msg.as_string())


def claim(db: Session, row_id: int, now: datetime | None = None) -> bool:
    """
    Marca a linha como SENDING antes do envio. O UPDATE é condicional, então
    só um worker ganha a linha; SENDING antigo (worker que morreu no meio)
    volta a ser elegível depois de CLAIM_TIMEOUT.
    """
    now = now or datetime.now(timezone.utc)
    updated = (
        db.query(EmailOutbox)
        .filter(EmailOutbox.id == row_id, _claimable(now))
        .update(
            {EmailOutbox.status: OutboxStatus.SENDING, EmailOutbox.claimed_at: now},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated == 1


def _claimable(now: datetime):
    return or_(
        EmailOutbox.status == OutboxStatus.PENDING,
        and_(EmailOutbox.status == OutboxStatus.SENDING, EmailOutbox.claimed_at < now - CLAIM_TIMEOUT),
    )


def _record_failure(row: EmailOutbox, error: Exception) -> None:
    row.attempts += 1
    row.last_error = str(error)
    if row.attempts >= MAX_ATTEMPTS:
        row.status = OutboxStatus.FAILED
        log.error(f"e-mail {row.id} -> {row.to_addr} falhou {row.attempts}x, desistindo: {error}")
    else:
        row.status = OutboxStatus.PENDING
        log.warning(f"e-mail {row.id} -> {row.to_addr} falhou (tentativa {row.attempts}): {error}")


def deliver_pending(db: Session, limit: int = 50, sender=send_email) -> int:
    """Envia até `limit` e-mails pendentes. Retorna quantos saíram."""
    if not settings.SMTP_HOST and sender is send_email:
        log.info("SMTP_HOST vazio; entrega de e-mails desativada")
        return 0

    now = datetime.now(timezone.utc)
    ids = [
        row_id
        for (row_id,) in db.query(EmailOutbox.id)
        .filter(_claimable(now))
        .order_by(EmailOutbox.id.asc())
        .limit(limit)
        .all()
    ]
    sent = 0
    for row_id in ids:
        if not claim(db, row_id, now):
            continue
        row = db.get(EmailOutbox, row_id)
        try:
            sender(row.to_addr, row.subject, row.html, row.reply_to)
        except (smtplib.SMTPException, OSError) as e:
            _record_failure(row, e)
        except Exception as e:
            log.exception(f"erro inesperado enviando e-mail {row.id}")
            _record_failure(row, e)
        else:
            row.attempts += 1
            row.status = OutboxStatus.SENT
            row.sent_at = datetime.now(timezone.utc)
            sent += 1
            log.info(f"e-mail enviado: {row.subject} -> {row.to_addr}")
        db.commit()
    return sent


def deliver_pending_background(limit: int = 50) -> None:
    """Versão para BackgroundTasks: abre a própria sessão."""
    from lnedu.database.session import SessionLocal

    db = SessionLocal()
    try:
        deliver_pending(db, limit)
    finally:
        db.close()
