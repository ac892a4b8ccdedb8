# backend/lnedu/services/newsletter.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from html import escape
from urllib.parse import quote

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from lnedu.core.config import settings
from lnedu.core.exceptions import NotFoundError
from lnedu.core.logger import get_logger
from lnedu.models.blog import BlogPost
from lnedu.models.newsletter import NewsletterIssue, NewsletterSubscriber
from lnedu.services.outbox import enqueue_email

log = get_logger("newsletter")

RECENT_DAYS = 30


def _normalize(email: str) -> str:
    return email.strip().lower()


def get_subscriber(db: Session, email: str) -> NewsletterSubscriber | None:
    return db.query(NewsletterSubscriber).filter(NewsletterSubscriber.email == _normalize(email)).first()


def subscribe(db: Session, email: str, name: str | None = None) -> tuple[NewsletterSubscriber, bool]:
    """Retorna (assinante, criado). E-mail já cadastrado é reativado."""
    sub = get_subscriber(db, email)
    if sub:
        sub.active = True
        if name:
            sub.name = name
        db.flush()
        return sub, False
    sub = NewsletterSubscriber(email=_normalize(email), name=name, active=True)
    db.add(sub)
    db.flush()
    return sub, True


def unsubscribe(db: Session, email: str) -> NewsletterSubscriber:
    sub = get_subscriber(db, email)
    if not sub:
        raise NotFoundError("Assinante não encontrado")
    sub.active = False
    db.flush()
    return sub


def list_subscribers(
    db: Session,
    *,
    active: bool | None = None,
    search: str | None = None,
    skip: int = 0,
    take: int = 20,
) -> tuple[list[NewsletterSubscriber], int]:
    q = db.query(NewsletterSubscriber)
    if active is not None:
        q = q.filter(NewsletterSubscriber.active == active)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(NewsletterSubscriber.email.ilike(like), NewsletterSubscriber.name.ilike(like)))
    total = q.count()
    rows = q.order_by(NewsletterSubscriber.created_at.desc(), NewsletterSubscriber.id.desc()).offset(skip).limit(take).all()
    return rows, total


def stats(db: Session) -> dict:
    since = datetime.now(timezone.utc) - timedelta(days=RECENT_DAYS)
    total = db.query(func.count(NewsletterSubscriber.id)).scalar() or 0
    active = db.query(func.count(NewsletterSubscriber.id)).filter(NewsletterSubscriber.active.is_(True)).scalar() or 0
    recent = db.query(func.count(NewsletterSubscriber.id)).filter(NewsletterSubscriber.created_at >= since).scalar() or 0
    return {
        "totalSubscribers": total,
        "activeSubscribers": active,
        "inactiveSubscribers": total - active,
        "recentSubscribers": recent,
    }


def unsubscribe_url(email: str) -> str:
    return f"{settings.SITE_URL}/newsletter/unsubscribe?email={quote(email)}"


def render(subject: str, content: str, subscriber: NewsletterSubscriber) -> str:
    # content é HTML escrito pela equipe; o que vem do assinante é escapado
    greeting = f"Olá {escape(subscriber.name)}," if subscriber.name else "Olá,"
    return (
        f"<h1>{escape(subject)}</h1>"
        f"<p>{greeting}</p>"
        f"{content}"
        f'<hr><p><small><a href="{escape(unsubscribe_url(subscriber.email))}">Cancelar inscrição</a></small></p>'
    )


def post_announcement(post: BlogPost) -> str:
    url = f"{settings.SITE_URL}/blog/{post.slug}"
    excerpt = f"<p>{escape(post.excerpt)}</p>" if post.excerpt else ""
    return f'<h2>{escape(post.title)}</h2>{excerpt}<p><a href="{escape(url)}">Ler o artigo completo</a></p>'


def send_newsletter(db: Session, subject: str, content: str | None = None, post_id: int | None = None) -> NewsletterIssue:
    """
    Enfileira um e-mail por assinante ativo no outbox (mesma transação do
    registro do envio). Com post_id e sem content, o corpo é o anúncio do post.
    """
    post = None
    if post_id is not None:
        post = db.get(BlogPost, post_id)
        if not post:
            raise NotFoundError("Post não encontrado")
    body = content if content else post_announcement(post) if post else ""

    subscribers = (
        db.query(NewsletterSubscriber)
        .filter(NewsletterSubscriber.active.is_(True))
        .order_by(NewsletterSubscriber.id.asc())
        .all()
    )
    for sub in subscribers:
        enqueue_email(db, sub.email, subject, render(subject, body, sub))

    issue = NewsletterIssue(post_id=post_id, subject=subject, content=body, subscriber_count=len(subscribers))
    db.add(issue)
    db.flush()
    log.info(f"newsletter '{subject}' enfileirada para {len(subscribers)} assinante(s)")
    return issue


def list_issues(db: Session, *, post_id: int | None = None, skip: int = 0, take: int = 20) -> tuple[list[NewsletterIssue], int]:
    q = db.query(NewsletterIssue)
    if post_id is not None:
        q = q.filter(NewsletterIssue.post_id == post_id)
    total = q.count()
    rows = q.order_by(NewsletterIssue.sent_at.desc(), NewsletterIssue.id.desc()).offset(skip).limit(take).all()
    return rows, total


def subscriber_to_dict(sub: NewsletterSubscriber) -> dict:
    return {
        "id": sub.id,
        "email": sub.email,
        "name": sub.name,
        "active": sub.active,
        "createdAt": sub.created_at.isoformat() if sub.created_at else None,
    }


def issue_to_dict(issue: NewsletterIssue) -> dict:
    return {
        "id": issue.id,
        "postId": issue.post_id,
        "subject": issue.subject,
        "subscriberCount": issue.subscriber_count,
        "sentAt": issue.sent_at.isoformat() if issue.sent_at else None,
    }
