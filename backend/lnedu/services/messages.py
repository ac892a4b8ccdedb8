# backend/lnedu/services/messages.py
"""Mensagens do formulário de contato e o painel de atendimento."""
from __future__ import annotations

from datetime import datetime, timezone
from html import escape

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from lnedu.core.exceptions import NotFoundError
from lnedu.models.enums import MessagePriority, MessageStatus
from lnedu.models.message import Message
from lnedu.models.user import User
from lnedu.services.outbox import enqueue_email, notify_admins

URGENT_WORDS = ("urgente", "urgent", "reclamação", "reembolso", "estorno")


def guess_priority(subject: str, message: str) -> MessagePriority:
    text = f"{subject} {message}".lower()
    if any(w in text for w in URGENT_WORDS):
        return MessagePriority.HIGH
    return MessagePriority.NORMAL


def create_message(db: Session, data: dict, *, ip: str, user_agent: str, spam_score: float) -> Message:
    msg = Message(
        name=data["name"],
        email=data["email"],
        phone=data.get("phone"),
        subject=data["subject"],
        message=data["message"],
        category=data.get("category"),
        priority=guess_priority(data["subject"], data["message"]),
        meta={
            "ip": ip,
            "userAgent": user_agent,
            "spamScore": spam_score,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
    db.add(msg)
    db.flush()

    notify_admins(
        db,
        f"Nova mensagem de contato: {msg.subject}",
        f"<p><b>{escape(msg.name)}</b> &lt;{escape(msg.email)}&gt; escreveu:</p><p>{escape(msg.message)}</p>",
        reply_to=msg.email,
    )
    enqueue_email(
        db,
        msg.email,
        "Recebemos sua mensagem - LN Educacional",
        f"<p>Olá {escape(msg.name)},</p><p>Recebemos sua mensagem sobre <b>{escape(msg.subject)}</b> "
        "e retornaremos o contato em breve.</p>",
    )
    return msg


def get_message(db: Session, message_id: int) -> Message:
    msg = db.get(Message, message_id)
    if not msg:
        raise NotFoundError("Mensagem não encontrada")
    return msg


def list_messages(
    db: Session,
    *,
    status: MessageStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    take: int = 20,
) -> tuple[list[Message], int]:
    q = db.query(Message)
    if status:
        q = q.filter(Message.status == status)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(
            Message.name.ilike(like),
            Message.email.ilike(like),
            Message.subject.ilike(like),
            Message.message.ilike(like),
        ))
    total = q.count()
    rows = q.order_by(Message.created_at.desc(), Message.id.desc()).offset(skip).limit(take).all()
    return rows, total


def update_status(db: Session, message_id: int, status: MessageStatus) -> Message:
    msg = get_message(db, message_id)
    msg.status = status
    return msg


def reply(db: Session, message_id: int, content: str, admin: User) -> Message:
    msg = get_message(db, message_id)
    msg.replied = True
    msg.reply_content = content
    msg.replied_at = datetime.now(timezone.utc)
    msg.assigned_to = admin.id
    msg.status = MessageStatus.READ
    enqueue_email(
        db,
        msg.email,
        f"Re: {msg.subject}",
        f"<p>Olá {escape(msg.name)},</p><p>{escape(content)}</p><hr><p><i>{escape(msg.message)}</i></p>",
    )
    return msg


def bulk_mark_read(db: Session, message_ids: list[int]) -> int:
    return (
        db.query(Message)
        .filter(Message.id.in_(message_ids))
        .update({Message.status: MessageStatus.READ}, synchronize_session=False)
    )


def delete_message(db: Session, message_id: int) -> None:
    db.delete(get_message(db, message_id))


def stats(db: Session) -> dict:
    by_status = dict(
        db.query(Message.status, func.count(Message.id)).group_by(Message.status).all()
    )
    by_priority = dict(
        db.query(Message.priority, func.count(Message.id)).group_by(Message.priority).all()
    )
    replied = db.query(func.count(Message.id)).filter(Message.replied.is_(True)).scalar() or 0
    total = sum(by_status.values())
    return {
        "total": total,
        "unread": by_status.get(MessageStatus.UNREAD, 0),
        "read": by_status.get(MessageStatus.READ, 0),
        "archived": by_status.get(MessageStatus.ARCHIVED, 0),
        "replied": replied,
        "byPriority": {p.value: by_priority.get(p, 0) for p in MessagePriority},
    }


def message_to_dict(m: Message) -> dict:
    return {
        "id": m.id,
        "name": m.name,
        "email": m.email,
        "phone": m.phone,
        "subject": m.subject,
        "message": m.message,
        "category": m.category,
        "status": m.status.value,
        "priority": m.priority.value,
        "replied": m.replied,
        "replyContent": m.reply_content,
        "repliedAt": m.replied_at.isoformat() if m.replied_at else None,
        "assignedTo": m.assigned_to,
        "metadata": m.meta or {},
        "createdAt": m.created_at.isoformat() if m.created_at else None,
    }
