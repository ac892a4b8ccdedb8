# backend/lnedu/services/blog.py
"""
Blog: posts, comentários moderados, curtidas e contadores de leitura.

Post público = published=True. Comentário entra com approved=False e só
aparece depois da moderação. A listagem pública fica em cache (Redis, 5 min)
e é invalidada em qualquer escrita de post.
"""
from __future__ import annotations

import json
import math
import re
import unicodedata
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from lnedu.core.cache import delete_cache_pattern, get_cache, set_cache
from lnedu.core.exceptions import BusinessRuleError, NotFoundError
from lnedu.core.logger import get_logger
from lnedu.models.blog import BlogComment, BlogLike, BlogPost, PostAnalytics
from lnedu.models.enums import PostStatus
from lnedu.models.user import User

log = get_logger("blog")

LIST_CACHE_PREFIX = "blog:posts:"
LIST_CACHE_TTL = 300
WORDS_PER_MINUTE = 225

_TAG_RE = re.compile(r"<[^>]*>")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -------------------- helpers --------------------
def slugify(title: str) -> str:
    text = unicodedata.normalize("NFD", title.lower())
    text = "".join(c for c in text if not unicodedata.combining(c))
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"\s+", "-", text.strip())
    return re.sub(r"-{2,}", "-", text).strip("-")


def reading_time(content: str) -> int:
    words = _TAG_RE.sub("", content).split()
    return max(1, math.ceil(len(words) / WORDS_PER_MINUTE))


def _unique_slug(db: Session, title: str, exclude_id: int | None = None) -> str:
    base = slugify(title) or "post"
    slug, n = base, 2
    while True:
        q = db.query(BlogPost.id).filter(BlogPost.slug == slug)
        if exclude_id is not None:
            q = q.filter(BlogPost.id != exclude_id)
        if q.first() is None:
            return slug
        slug = f"{base}-{n}"
        n += 1


def _set_published(post: BlogPost, published: bool, status: PostStatus | None = None) -> None:
    post.published = published
    if published:
        post.status = PostStatus.PUBLISHED
        post.published_at = post.published_at or _utcnow()
    else:
        post.status = status if status and status != PostStatus.PUBLISHED else PostStatus.DRAFT
        post.published_at = None


def _invalidate_lists() -> None:
    delete_cache_pattern(LIST_CACHE_PREFIX + "*")


# -------------------- posts --------------------
def get_post(db: Session, post_id: int) -> BlogPost:
    post = db.get(BlogPost, post_id)
    if not post:
        raise NotFoundError("Post não encontrado")
    return post


def get_published_post(db: Session, post_id: int) -> BlogPost:
    post = get_post(db, post_id)
    if not post.published:
        raise NotFoundError("Post não encontrado")
    return post


def create_post(db: Session, author: User, data: dict) -> BlogPost:
    post = BlogPost(
        title=data["title"],
        slug=_unique_slug(db, data["title"]),
        content=data["content"],
        excerpt=data.get("excerpt"),
        cover_image_url=data.get("coverImageUrl"),
        tags=list(data.get("tags") or []),
        reading_time=data.get("readingTime") or reading_time(data["content"]),
        author_id=author.id,
    )
    _set_published(post, bool(data.get("published")), data.get("status"))
    if data.get("status") == PostStatus.PUBLISHED:
        _set_published(post, True)
    db.add(post)
    db.flush()
    _invalidate_lists()
    log.info(f"post criado: {post.slug} (published={post.published})")
    return post


def update_post(db: Session, post_id: int, data: dict) -> BlogPost:
    post = get_post(db, post_id)
    if data.get("title"):
        post.title = data["title"]
        post.slug = _unique_slug(db, data["title"], exclude_id=post.id)
    if data.get("content"):
        post.content = data["content"]
        if data.get("readingTime") is None:
            post.reading_time = reading_time(data["content"])
    if data.get("readingTime") is not None:
        post.reading_time = data["readingTime"]
    for field, attr in (("excerpt", "excerpt"), ("coverImageUrl", "cover_image_url")):
        if field in data and data[field] is not None:
            setattr(post, attr, data[field])
    if data.get("tags") is not None:
        post.tags = list(data["tags"])

    if data.get("published") is not None:
        _set_published(post, data["published"], data.get("status"))
    elif data.get("status") is not None:
        _set_published(post, data["status"] == PostStatus.PUBLISHED, data["status"])
    db.flush()
    _invalidate_lists()
    return post


def toggle_publish(db: Session, post_id: int) -> BlogPost:
    post = get_post(db, post_id)
    _set_published(post, not post.published)
    db.flush()
    _invalidate_lists()
    return post


def delete_post(db: Session, post_id: int) -> None:
    db.delete(get_post(db, post_id))
    db.flush()
    _invalidate_lists()


def list_posts(
    db: Session,
    *,
    published: bool | None = None,
    search: str | None = None,
    tag: str | None = None,
    skip: int = 0,
    take: int = 20,
) -> dict:
    cacheable = published is True and not search
    cache_key = LIST_CACHE_PREFIX + json.dumps({"tag": tag, "skip": skip, "take": take}, sort_keys=True)
    if cacheable:
        cached = get_cache(cache_key)
        if cached is not None:
            return cached

    q = db.query(BlogPost)
    if published is not None:
        q = q.filter(BlogPost.published == published)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(BlogPost.title.ilike(like), BlogPost.content.ilike(like), BlogPost.excerpt.ilike(like)))
    rows = q.order_by(BlogPost.created_at.desc(), BlogPost.id.desc()).all()
    if tag:
        # tags é JSON; filtra em Python para funcionar em qualquer banco
        rows = [p for p in rows if tag in (p.tags or [])]

    result = {
        "posts": [post_to_dict(db, p, with_content=False) for p in rows[skip:skip + take]],
        "total": len(rows),
    }
    if cacheable:
        set_cache(cache_key, result, LIST_CACHE_TTL)
    return result


def read_post_by_slug(db: Session, slug: str) -> BlogPost:
    post = db.query(BlogPost).filter(BlogPost.slug == slug, BlogPost.published.is_(True)).first()
    if not post:
        raise NotFoundError("Post não encontrado")
    post.views += 1
    db.flush()
    return post


def related_posts(db: Session, post_id: int, limit: int = 4) -> list[BlogPost]:
    post = get_post(db, post_id)
    tags = set(post.tags or [])
    if not tags:
        return []
    candidates = (
        db.query(BlogPost)
        .filter(BlogPost.published.is_(True), BlogPost.id != post.id)
        .order_by(BlogPost.published_at.desc(), BlogPost.id.desc())
        .all()
    )
    return [p for p in candidates if tags & set(p.tags or [])][:limit]


# -------------------- comentários --------------------
def create_comment(db: Session, user: User, post_id: int, content: str, parent_id: int | None = None) -> BlogComment:
    post = get_published_post(db, post_id)
    if parent_id is not None:
        parent = db.get(BlogComment, parent_id)
        if not parent or parent.post_id != post.id:
            raise NotFoundError("Comentário não encontrado")
        if parent.parent_id is not None:
            raise BusinessRuleError("Não é possível responder a uma resposta")
    comment = BlogComment(post_id=post.id, user_id=user.id, parent_id=parent_id, content=content)
    db.add(comment)
    db.flush()
    return comment


def get_comment(db: Session, comment_id: int) -> BlogComment:
    comment = db.get(BlogComment, comment_id)
    if not comment:
        raise NotFoundError("Comentário não encontrado")
    return comment


def approved_thread(db: Session, post_id: int) -> list[dict]:
    """Comentários aprovados do post, com as respostas aprovadas aninhadas."""
    get_published_post(db, post_id)
    rows = (
        db.query(BlogComment)
        .filter(BlogComment.post_id == post_id, BlogComment.approved.is_(True))
        .order_by(BlogComment.created_at.asc(), BlogComment.id.asc())
        .all()
    )
    names = _user_names(db, {c.user_id for c in rows})
    top = [comment_to_dict(c, names) | {"replies": []} for c in rows if c.parent_id is None]
    by_id = {c["id"]: c for c in top}
    for c in rows:
        if c.parent_id in by_id:
            by_id[c.parent_id]["replies"].append(comment_to_dict(c, names))
    return top


def list_comments(
    db: Session,
    *,
    post_id: int | None = None,
    approved: bool | None = None,
    search: str | None = None,
    skip: int = 0,
    take: int = 20,
) -> tuple[list[BlogComment], int]:
    q = db.query(BlogComment)
    if post_id is not None:
        q = q.filter(BlogComment.post_id == post_id)
    if approved is not None:
        q = q.filter(BlogComment.approved == approved)
    if search:
        q = q.filter(BlogComment.content.ilike(f"%{search}%"))
    total = q.count()
    rows = q.order_by(BlogComment.created_at.desc(), BlogComment.id.desc()).offset(skip).limit(take).all()
    return rows, total


def approve_comment(db: Session, comment_id: int) -> BlogComment:
    comment = get_comment(db, comment_id)
    comment.approved = True
    db.flush()
    return comment


def update_comment(db: Session, comment_id: int, data: dict) -> BlogComment:
    comment = get_comment(db, comment_id)
    if data.get("content") is not None:
        comment.content = data["content"]
    if data.get("approved") is not None:
        comment.approved = data["approved"]
    db.flush()
    return comment


def delete_comment(db: Session, comment_id: int) -> None:
    comment = get_comment(db, comment_id)
    db.query(BlogComment).filter(BlogComment.parent_id == comment.id).delete(synchronize_session=False)
    db.delete(comment)
    db.flush()


# -------------------- curtidas --------------------
def toggle_like(db: Session, user: User, post_id: int) -> bool:
    post = get_published_post(db, post_id)
    like = db.query(BlogLike).filter(BlogLike.post_id == post.id, BlogLike.user_id == user.id).first()
    if like:
        db.delete(like)
        db.flush()
        return False
    db.add(BlogLike(post_id=post.id, user_id=user.id))
    db.flush()
    return True


def like_count(db: Session, post_id: int) -> int:
    return db.query(func.count(BlogLike.id)).filter(BlogLike.post_id == post_id).scalar() or 0


def has_liked(db: Session, user: User, post_id: int) -> bool:
    return db.query(BlogLike.id).filter(BlogLike.post_id == post_id, BlogLike.user_id == user.id).first() is not None


# -------------------- analytics --------------------
def _today_row(db: Session, post_id: int, today: date) -> PostAnalytics:
    row = db.query(PostAnalytics).filter(PostAnalytics.post_id == post_id, PostAnalytics.day == today).first()
    if row is None:
        row = PostAnalytics(post_id=post_id, day=today, views=0, shares=0, share_platforms={})
        db.add(row)
    return row


def track_view(db: Session, post_id: int, today: date | None = None) -> PostAnalytics:
    post = get_published_post(db, post_id)
    row = _today_row(db, post.id, today or _utcnow().date())
    row.views += 1
    post.views += 1
    db.flush()
    return row


def track_share(db: Session, post_id: int, platform: str, today: date | None = None) -> PostAnalytics:
    post = get_published_post(db, post_id)
    row = _today_row(db, post.id, today or _utcnow().date())
    row.shares += 1
    platforms = dict(row.share_platforms or {})
    platforms[platform] = platforms.get(platform, 0) + 1
    row.share_platforms = platforms
    db.flush()
    return row


def blog_overview(db: Session, days: int = 30, today: date | None = None) -> dict:
    since = (today or _utcnow().date()) - timedelta(days=days - 1)
    period_views, period_shares = (
        db.query(func.coalesce(func.sum(PostAnalytics.views), 0), func.coalesce(func.sum(PostAnalytics.shares), 0))
        .filter(PostAnalytics.day >= since)
        .one()
    )
    top = db.query(BlogPost).order_by(BlogPost.views.desc(), BlogPost.id.asc()).limit(5).all()
    return {
        "totalPosts": db.query(func.count(BlogPost.id)).scalar() or 0,
        "publishedPosts": db.query(func.count(BlogPost.id)).filter(BlogPost.published.is_(True)).scalar() or 0,
        "totalViews": db.query(func.coalesce(func.sum(BlogPost.views), 0)).scalar(),
        "totalLikes": db.query(func.count(BlogLike.id)).scalar() or 0,
        "approvedComments": db.query(func.count(BlogComment.id)).filter(BlogComment.approved.is_(True)).scalar() or 0,
        "pendingComments": db.query(func.count(BlogComment.id)).filter(BlogComment.approved.is_(False)).scalar() or 0,
        "periodDays": days,
        "periodViews": int(period_views),
        "periodShares": int(period_shares),
        "topPosts": [{"id": p.id, "title": p.title, "slug": p.slug, "views": p.views} for p in top],
    }


# -------------------- serialização --------------------
def _user_names(db: Session, user_ids: set[int]) -> dict[int, str]:
    if not user_ids:
        return {}
    return dict(db.query(User.id, User.name).filter(User.id.in_(user_ids)).all())


def post_to_dict(db: Session, post: BlogPost, *, with_content: bool = True) -> dict:
    data = {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt,
        "coverImageUrl": post.cover_image_url,
        "tags": list(post.tags or []),
        "published": post.published,
        "status": post.status.value,
        "publishedAt": post.published_at.isoformat() if post.published_at else None,
        "readingTime": post.reading_time,
        "views": post.views,
        "authorId": post.author_id,
        "likes": like_count(db, post.id),
        "comments": db.query(func.count(BlogComment.id))
        .filter(BlogComment.post_id == post.id, BlogComment.approved.is_(True))
        .scalar() or 0,
        "createdAt": post.created_at.isoformat() if post.created_at else None,
    }
    if with_content:
        data["content"] = post.content
    return data


def comment_to_dict(comment: BlogComment, names: dict[int, str] | None = None) -> dict:
    return {
        "id": comment.id,
        "postId": comment.post_id,
        "userId": comment.user_id,
        "userName": (names or {}).get(comment.user_id),
        "parentId": comment.parent_id,
        "content": comment.content,
        "approved": comment.approved,
        "createdAt": comment.created_at.isoformat() if comment.created_at else None,
    }
