# backend/lnedu/api/v1/routes/collaborators.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from lnedu.api.v1.deps import get_current_user, require_admin
from lnedu.database.session import get_db
from lnedu.models.enums import ApplicationStatus
from lnedu.models.user import User
from lnedu.schemas.collaborator import ApplicationIn, ApplicationStageIn, ApplicationStatusIn, EvaluationIn
from lnedu.services import collaborators as svc

router = APIRouter(tags=["collaborators"])


@router.post("/collaborator/apply", status_code=status.HTTP_201_CREATED)
def apply(body: ApplicationIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return svc.application_to_dict(svc.apply(db, user, body.model_dump()))


@router.get("/collaborator/application")
def my_application(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return svc.application_to_dict(svc.get_own_application(db, user))


@router.get("/admin/collaborators")
def admin_list(
    status_: ApplicationStatus | None = Query(default=None, alias="status"),
    search: str | None = None,
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows, total = svc.list_applications(db, status=status_, search=search, skip=skip, take=take)
    return {"applications": [svc.application_to_dict(a) for a in rows], "total": total}


@router.put("/admin/collaborators/{application_id}/status")
def admin_status(
    application_id: int,
    body: ApplicationStatusIn,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    application = svc.update_status(db, application_id, body.status)
    db.commit()
    db.refresh(application)
    return svc.application_to_dict(application)


@router.patch("/admin/collaborators/{application_id}/stage")
def admin_stage(
    application_id: int,
    body: ApplicationStageIn,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    application = svc.update_stage(db, application_id, body.stage)
    db.commit()
    db.refresh(application)
    return svc.application_to_dict(application)


@router.post("/admin/collaborators/{application_id}/evaluate", status_code=status.HTTP_201_CREATED)
def admin_evaluate(
    application_id: int,
    body: EvaluationIn,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    evaluation = svc.evaluate(db, application_id, admin, body.model_dump())
    db.commit()
    db.refresh(evaluation)
    application = svc.get_application(db, application_id)
    return {"evaluation": svc.evaluation_to_dict(evaluation), "applicationScore": application.score}
