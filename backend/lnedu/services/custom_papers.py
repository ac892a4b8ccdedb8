# backend/lnedu/services/custom_papers.py
"""
Fluxo do trabalho personalizado:

    REQUESTED -> QUOTED -> APPROVED -> IN_PROGRESS -> REVIEW -> COMPLETED
    REQUESTED/QUOTED -> REJECTED

Toda mudança de status passa por transition(); transição fora da tabela
levanta InvalidTransitionError sem tocar na linha.
"""
from __future__ import annotations

from datetime import datetime, timezone
from html import escape

from sqlalchemy import or_
from sqlalchemy.orm import Session

from lnedu.core.exceptions import InvalidTransitionError, NotFoundError, PermissionDeniedError
from lnedu.core.logger import get_logger
from lnedu.models.custom_paper import CustomPaper, CustomPaperMessage
from lnedu.models.enums import CustomPaperStatus, Urgency
from lnedu.models.user import User
from lnedu.services.outbox import enqueue_email

log = get_logger("custom_papers")

CP = CustomPaperStatus

TRANSITIONS: dict[CustomPaperStatus, frozenset[CustomPaperStatus]] = {
    CP.REQUESTED: frozenset({CP.QUOTED, CP.REJECTED}),
    CP.QUOTED: frozenset({CP.QUOTED, CP.APPROVED, CP.REJECTED}),  # QUOTED -> QUOTED = nova cotação
    CP.APPROVED: frozenset({CP.IN_PROGRESS}),
    CP.IN_PROGRESS: frozenset({CP.REVIEW}),
    CP.REVIEW: frozenset({CP.COMPLETED}),
    CP.REJECTED: frozenset(),
    CP.COMPLETED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def can_transition(current: CustomPaperStatus, target: CustomPaperStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def transition(paper: CustomPaper, target: CustomPaperStatus, message: str | None = None) -> None:
    if not can_transition(paper.status, target):
        raise InvalidTransitionError("Trabalho personalizado", paper.status.value, target.value, message)
    log.info(f"custom paper {paper.id}: {paper.status.value} -> {target.value}")
    paper.status = target


def get_paper(db: Session, paper_id: int) -> CustomPaper:
    paper = db.get(CustomPaper, paper_id)
    if not paper:
        raise NotFoundError("Trabalho não encontrado")
    return paper


def get_paper_for(db: Session, paper_id: int, user: User, is_admin: bool) -> CustomPaper:
    """Dono ou admin; para os demais o trabalho 'não existe'."""
    paper = db.get(CustomPaper, paper_id)
    if not paper or (not is_admin and paper.user_id != user.id):
        raise NotFoundError("Trabalho não encontrado")
    return paper


# -------------------- aluno --------------------
def create_request(db: Session, user: User, data: dict) -> CustomPaper:
    paper = CustomPaper(
        user_id=user.id,
        title=data["title"],
        description=data["description"],
        paper_type=data["paperType"],
        academic_area=data["academicArea"],
        page_count=data["pageCount"],
        deadline=data["deadline"],
        urgency=Urgency(data.get("urgency") or Urgency.NORMAL),
        requirements=data["requirements"],
        keywords=data.get("keywords"),
        references=data.get("references"),
        requirement_files=list(data.get("requirementFiles") or []),
        status=CP.REQUESTED,
    )
    db.add(paper)
    db.flush()
    return paper


def approve_quote(db: Session, paper_id: int, user: User) -> CustomPaper:
    paper = get_paper(db, paper_id)
    if paper.user_id != user.id:
        raise PermissionDeniedError("Apenas o solicitante pode aprovar o orçamento")
    if paper.status != CP.QUOTED:
        raise InvalidTransitionError(
            "Trabalho personalizado", paper.status.value, CP.APPROVED.value,
            "O trabalho precisa estar orçado para ser aprovado",
        )
    transition(paper, CP.APPROVED)
    paper.final_price = paper.quoted_price
    paper.approved_at = _utcnow()
    return paper


def list_user_requests(db: Session, user_id: int) -> list[CustomPaper]:
    return (
        db.query(CustomPaper)
        .filter(CustomPaper.user_id == user_id)
        .order_by(CustomPaper.requested_at.desc(), CustomPaper.id.desc())
        .all()
    )


# -------------------- admin --------------------
def list_requests(
    db: Session,
    *,
    status: CustomPaperStatus | None = None,
    urgency: Urgency | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    q = db.query(CustomPaper)
    if status:
        q = q.filter(CustomPaper.status == status)
    if urgency:
        q = q.filter(CustomPaper.urgency == urgency)
    if search:
        like = f"%{search}%"
        q = q.outerjoin(User, CustomPaper.user_id == User.id).filter(
            or_(CustomPaper.title.ilike(like), CustomPaper.description.ilike(like), User.name.ilike(like))
        )
    total = q.count()
    items = (
        q.order_by(CustomPaper.requested_at.desc(), CustomPaper.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": items, "total": total, "page": page, "totalPages": (total + limit - 1) // limit}


def _notify_owner(db: Session, paper: CustomPaper, subject: str, html: str) -> None:
    owner = db.get(User, paper.user_id) if paper.user_id else None
    if owner:
        enqueue_email(db, owner.email, subject, html)


def provide_quote(db: Session, paper_id: int, quoted_price: int, admin_notes: str | None = None) -> CustomPaper:
    paper = get_paper(db, paper_id)
    transition(paper, CP.QUOTED)
    paper.quoted_price = quoted_price
    if admin_notes is not None:
        paper.admin_notes = admin_notes
    paper.quoted_at = _utcnow()
    _notify_owner(
        db, paper,
        f"Orçamento disponível: {paper.title}",
        f"<p>Seu trabalho <b>{escape(paper.title)}</b> foi orçado em R$ {quoted_price / 100:.2f}.</p>"
        "<p>Acesse sua área do aluno para aprovar.</p>",
    )
    return paper


def update_status(db: Session, paper_id: int, status: CustomPaperStatus, notes: str | None = None) -> CustomPaper:
    paper = get_paper(db, paper_id)
    transition(paper, status)
    if notes:
        paper.admin_notes = notes
    if status == CP.IN_PROGRESS:
        paper.started_at = _utcnow()
    elif status == CP.COMPLETED:
        paper.completed_at = _utcnow()
    return paper


def upload_delivery(db: Session, paper_id: int, file_urls: list[str]) -> CustomPaper:
    paper = get_paper(db, paper_id)
    transition(paper, CP.REVIEW)
    paper.delivery_files = [*(paper.delivery_files or []), *file_urls]
    _notify_owner(
        db, paper,
        f"Trabalho entregue: {paper.title}",
        f"<p>Os arquivos do trabalho <b>{escape(paper.title)}</b> estão disponíveis para revisão.</p>",
    )
    return paper


def reject(db: Session, paper_id: int, reason: str) -> CustomPaper:
    paper = get_paper(db, paper_id)
    transition(paper, CP.REJECTED)
    paper.rejection_reason = reason
    _notify_owner(
        db, paper,
        f"Solicitação recusada: {paper.title}",
        f"<p>Sua solicitação <b>{escape(paper.title)}</b> foi recusada.</p><p>Motivo: {escape(reason)}</p>",
    )
    return paper


# -------------------- mensagens --------------------
def send_message(
    db: Session, paper: CustomPaper, sender: User, content: str, attachments: list[str] | None, is_from_admin: bool
) -> CustomPaperMessage:
    msg = CustomPaperMessage(
        custom_paper_id=paper.id,
        sender_id=sender.id,
        content=content,
        attachments=list(attachments or []),
        is_from_admin=is_from_admin,
    )
    db.add(msg)
    db.flush()
    return msg


def list_messages(db: Session, paper: CustomPaper) -> list[CustomPaperMessage]:
    return (
        db.query(CustomPaperMessage)
        .filter(CustomPaperMessage.custom_paper_id == paper.id)
        .order_by(CustomPaperMessage.created_at.asc(), CustomPaperMessage.id.asc())
        .all()
    )


def mark_read(db: Session, paper: CustomPaper, reader: User) -> int:
    """Marca como lidas as mensagens que não foram enviadas pelo próprio leitor."""
    return (
        db.query(CustomPaperMessage)
        .filter(
            CustomPaperMessage.custom_paper_id == paper.id,
            CustomPaperMessage.is_read.is_(False),
            CustomPaperMessage.sender_id != reader.id,
        )
        .update({CustomPaperMessage.is_read: True}, synchronize_session=False)
    )


# -------------------- serialização --------------------
def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def paper_to_dict(paper: CustomPaper) -> dict:
    return {
        "id": paper.id,
        "userId": paper.user_id,
        "title": paper.title,
        "description": paper.description,
        "paperType": paper.paper_type,
        "academicArea": paper.academic_area,
        "pageCount": paper.page_count,
        "deadline": _iso(paper.deadline),
        "urgency": paper.urgency.value,
        "requirements": paper.requirements,
        "keywords": paper.keywords,
        "references": paper.references,
        "requirementFiles": paper.requirement_files or [],
        "deliveryFiles": paper.delivery_files or [],
        "status": paper.status.value,
        "quotedPrice": paper.quoted_price,
        "finalPrice": paper.final_price,
        "adminNotes": paper.admin_notes,
        "rejectionReason": paper.rejection_reason,
        "requestedAt": _iso(paper.requested_at),
        "quotedAt": _iso(paper.quoted_at),
        "approvedAt": _iso(paper.approved_at),
        "startedAt": _iso(paper.started_at),
        "completedAt": _iso(paper.completed_at),
    }


def message_to_dict(msg: CustomPaperMessage) -> dict:
    return {
        "id": msg.id,
        "customPaperId": msg.custom_paper_id,
        "senderId": msg.sender_id,
        "content": msg.content,
        "attachments": msg.attachments or [],
        "isFromAdmin": msg.is_from_admin,
        "isRead": msg.is_read,
        "createdAt": _iso(msg.created_at),
    }
