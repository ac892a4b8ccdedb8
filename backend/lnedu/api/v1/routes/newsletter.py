# backend/lnedu/api/v1/routes/newsletter.py
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from lnedu.api.v1.deps import require_admin
from lnedu.database.session import get_db
from lnedu.models.user import User
from lnedu.schemas.newsletter import NewsletterSendIn, SubscribeIn, UnsubscribeIn
from lnedu.services import newsletter as svc
from lnedu.services.outbox import deliver_pending_background

router = APIRouter(tags=["newsletter"])


@router.post("/newsletter/subscribe")
def subscribe(body: SubscribeIn, db: Session = Depends(get_db)):
    sub, created = svc.subscribe(db, body.email, body.name)
    db.commit()
    db.refresh(sub)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        content={
            "success": True,
            "message": "Inscrição realizada com sucesso" if created else "Inscrição atualizada",
            "subscriber": svc.subscriber_to_dict(sub),
        },
    )


@router.post("/newsletter/unsubscribe")
def unsubscribe(body: UnsubscribeIn, db: Session = Depends(get_db)):
    svc.unsubscribe(db, body.email)
    db.commit()
    return {"success": True, "message": "Inscrição cancelada"}


@router.get("/newsletter/status/{email}")
def subscription_status(email: str, db: Session = Depends(get_db)):
    sub = svc.get_subscriber(db, email)
    return {"subscribed": bool(sub and sub.active), "email": email.strip().lower(), "name": sub.name if sub else None}


# -------------------- admin --------------------
@router.get("/admin/newsletter/subscribers")
def admin_subscribers(
    active: bool | None = None,
    search: str | None = None,
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows, total = svc.list_subscribers(db, active=active, search=search, skip=skip, take=take)
    return {"subscribers": [svc.subscriber_to_dict(s) for s in rows], "total": total}


@router.get("/admin/newsletter/stats")
def admin_stats(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return svc.stats(db)


@router.post("/admin/newsletter/send")
def admin_send(
    body: NewsletterSendIn,
    tasks: BackgroundTasks,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    issue = svc.send_newsletter(db, body.subject, body.content, body.postId)
    db.commit()
    tasks.add_task(deliver_pending_background)
    return {
        "success": True,
        "message": f"Newsletter enfileirada para {issue.subscriber_count} assinante(s)",
        "subscriberCount": issue.subscriber_count,
        "issueId": issue.id,
    }


@router.get("/admin/newsletter/issues")
def admin_issues(
    postId: int | None = None,
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows, total = svc.list_issues(db, post_id=postId, skip=skip, take=take)
    return {"issues": [svc.issue_to_dict(i) for i in rows], "total": total}
