# backend/lnedu/api/v1/routes/custom_papers.py
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from lnedu.api.v1.deps import get_current_user, is_admin, require_admin
from lnedu.database.session import get_db
from lnedu.models.enums import CustomPaperStatus, Urgency
from lnedu.models.user import User
from lnedu.schemas.custom_paper import (
    CustomPaperIn,
    DeliveryIn,
    PaperMessageIn,
    PaperStatusIn,
    QuoteIn,
    RejectIn,
)
from lnedu.services import custom_papers as svc
from lnedu.services.outbox import deliver_pending_background

router = APIRouter(tags=["custom-papers"])


# -------------------- aluno --------------------
@router.post("/custom-papers", status_code=status.HTTP_201_CREATED)
def create_request(body: CustomPaperIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    paper = svc.create_request(db, user, body.model_dump())
    db.commit()
    db.refresh(paper)
    return svc.paper_to_dict(paper)


@router.get("/custom-papers/my-requests")
def my_requests(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [svc.paper_to_dict(p) for p in svc.list_user_requests(db, user.id)]


@router.get("/custom-papers/{paper_id}")
def get_request(paper_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    paper = svc.get_paper_for(db, paper_id, user, is_admin(user))
    data = svc.paper_to_dict(paper)
    data["messages"] = [svc.message_to_dict(m) for m in svc.list_messages(db, paper)]
    return data


@router.post("/custom-papers/{paper_id}/approve")
def approve(paper_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    paper = svc.approve_quote(db, paper_id, user)
    db.commit()
    db.refresh(paper)
    return svc.paper_to_dict(paper)


@router.post("/custom-papers/{paper_id}/messages", status_code=status.HTTP_201_CREATED)
def send_message(
    paper_id: int,
    body: PaperMessageIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    admin = is_admin(user)
    paper = svc.get_paper_for(db, paper_id, user, admin)
    msg = svc.send_message(db, paper, user, body.content, body.attachments, is_from_admin=admin)
    db.commit()
    db.refresh(msg)
    return svc.message_to_dict(msg)


@router.get("/custom-papers/{paper_id}/messages")
def get_messages(paper_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    paper = svc.get_paper_for(db, paper_id, user, is_admin(user))
    return [svc.message_to_dict(m) for m in svc.list_messages(db, paper)]


@router.patch("/custom-papers/{paper_id}/messages/read")
def mark_read(paper_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    paper = svc.get_paper_for(db, paper_id, user, is_admin(user))
    updated = svc.mark_read(db, paper, user)
    db.commit()
    return {"updated": updated}


# -------------------- admin --------------------
@router.get("/admin/custom-papers")
def admin_list(
    status_: CustomPaperStatus | None = Query(default=None, alias="status"),
    urgency: Urgency | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = svc.list_requests(db, status=status_, urgency=urgency, search=search, page=page, limit=limit)
    result["items"] = [svc.paper_to_dict(p) for p in result["items"]]
    return result


@router.patch("/admin/custom-papers/{paper_id}/quote")
def admin_quote(
    paper_id: int,
    body: QuoteIn,
    tasks: BackgroundTasks,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    paper = svc.provide_quote(db, paper_id, body.quotedPrice, body.adminNotes)
    db.commit()
    db.refresh(paper)
    tasks.add_task(deliver_pending_background)
    return svc.paper_to_dict(paper)


@router.patch("/admin/custom-papers/{paper_id}/status")
def admin_status(
    paper_id: int,
    body: PaperStatusIn,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    paper = svc.update_status(db, paper_id, body.status, body.notes)
    db.commit()
    db.refresh(paper)
    return svc.paper_to_dict(paper)


@router.post("/admin/custom-papers/{paper_id}/delivery")
def admin_delivery(
    paper_id: int,
    body: DeliveryIn,
    tasks: BackgroundTasks,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    paper = svc.upload_delivery(db, paper_id, body.fileUrls)
    db.commit()
    db.refresh(paper)
    tasks.add_task(deliver_pending_background)
    return svc.paper_to_dict(paper)


@router.patch("/admin/custom-papers/{paper_id}/reject")
def admin_reject(
    paper_id: int,
    body: RejectIn,
    tasks: BackgroundTasks,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    paper = svc.reject(db, paper_id, body.reason)
    db.commit()
    db.refresh(paper)
    tasks.add_task(deliver_pending_background)
    return svc.paper_to_dict(paper)
