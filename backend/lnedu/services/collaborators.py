# backend/lnedu/services/collaborators.py
from __future__ import annotations

import math

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lnedu.core.exceptions import BusinessRuleError, NotFoundError
from lnedu.core.logger import get_logger
from lnedu.models.collaborator import CollaboratorApplication, Evaluation
from lnedu.models.enums import ApplicationStage, ApplicationStatus, Recommendation, UserRole
from lnedu.models.user import User

log = get_logger("collaborators")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def apply(db: Session, user: User, data: dict) -> CollaboratorApplication:
    # a constraint unique(user_id) decide; nada de checar antes
    application = CollaboratorApplication(
        user_id=user.id,
        full_name=data["fullName"],
        email=data["email"],
        phone=data["phone"],
        area=data["area"],
        experience=data["experience"],
        availability=data["availability"],
        resume_url=data.get("resumeUrl"),
    )
    db.add(application)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BusinessRuleError("Você já possui uma candidatura registrada")
    db.refresh(application)
    return application


def get_own_application(db: Session, user: User) -> CollaboratorApplication:
    application = db.query(CollaboratorApplication).filter(CollaboratorApplication.user_id == user.id).first()
    if not application:
        raise NotFoundError("Candidatura não encontrada")
    return application


def get_application(db: Session, application_id: int) -> CollaboratorApplication:
    application = db.get(CollaboratorApplication, application_id)
    if not application:
        raise NotFoundError("Candidatura não encontrada")
    return application


def list_applications(
    db: Session,
    *,
    status: ApplicationStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    take: int = 20,
) -> tuple[list[CollaboratorApplication], int]:
    q = db.query(CollaboratorApplication)
    if status:
        q = q.filter(CollaboratorApplication.status == status)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(
            CollaboratorApplication.full_name.ilike(like),
            CollaboratorApplication.email.ilike(like),
            CollaboratorApplication.area.ilike(like),
        ))
    total = q.count()
    rows = q.order_by(CollaboratorApplication.created_at.desc(), CollaboratorApplication.id.desc()).offset(skip).limit(take).all()
    return rows, total


def update_status(db: Session, application_id: int, status: ApplicationStatus) -> CollaboratorApplication:
    application = get_application(db, application_id)
    application.status = status
    if status == ApplicationStatus.APPROVED:
        user = db.get(User, application.user_id)
        if user and user.role != UserRole.ADMIN:
            user.role = UserRole.COLLABORATOR
            log.info(f"user {user.id} promovido a COLLABORATOR")
    return application


def update_stage(db: Session, application_id: int, stage: ApplicationStage) -> CollaboratorApplication:
    application = get_application(db, application_id)
    application.stage = stage
    return application


def evaluate(db: Session, application_id: int, evaluator: User, data: dict) -> Evaluation:
    application = get_application(db, application_id)
    scores = (
        data["experienceScore"],
        data["skillsScore"],
        data["educationScore"],
        data["culturalFitScore"],
    )
    evaluation = Evaluation(
        application_id=application.id,
        evaluator_id=evaluator.id,
        experience_score=scores[0],
        skills_score=scores[1],
        education_score=scores[2],
        cultural_fit_score=scores[3],
        total_score=round_half_up(sum(scores) / 4),
        recommendation=Recommendation(data["recommendation"]),
        comments=data.get("comments") or "",
    )
    db.add(evaluation)
    db.flush()

    avg = (
        db.query(func.avg(Evaluation.total_score))
        .filter(Evaluation.application_id == application.id)
        .scalar()
    )
    application.score = round_half_up(float(avg or 0))
    return evaluation


def application_to_dict(a: CollaboratorApplication) -> dict:
    return {
        "id": a.id,
        "userId": a.user_id,
        "fullName": a.full_name,
        "email": a.email,
        "phone": a.phone,
        "area": a.area,
        "experience": a.experience,
        "availability": a.availability,
        "resumeUrl": a.resume_url,
        "status": a.status.value,
        "stage": a.stage.value,
        "score": a.score,
        "createdAt": a.created_at.isoformat() if a.created_at else None,
    }


def evaluation_to_dict(e: Evaluation) -> dict:
    return {
        "id": e.id,
        "applicationId": e.application_id,
        "evaluatorId": e.evaluator_id,
        "experienceScore": e.experience_score,
        "skillsScore": e.skills_score,
        "educationScore": e.education_score,
        "culturalFitScore": e.cultural_fit_score,
        "totalScore": e.total_score,
        "recommendation": e.recommendation.value,
        "comments": e.comments,
    }
