# backend/lnedu/api/v1/routes/blog.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from lnedu.api.v1.deps import get_current_user, require_admin
from lnedu.database.session import get_db
from lnedu.models.user import User
from lnedu.schemas.blog import CommentIn, CommentUpdateIn, PostIn, PostUpdateIn, TrackShareIn, TrackViewIn
from lnedu.services import blog as svc

router = APIRouter(tags=["blog"])


# -------------------- público --------------------
@router.get("/blog")
def list_published(
    search: str | None = None,
    tag: str | None = None,
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return svc.list_posts(db, published=True, search=search, tag=tag, skip=skip, take=take)


@router.get("/blog/{slug}")
def read_post(slug: str, db: Session = Depends(get_db)):
    post = svc.read_post_by_slug(db, slug)
    db.commit()
    return svc.post_to_dict(db, post)


@router.get("/blog/{post_id}/related")
def related(post_id: int, limit: int = Query(4, ge=1, le=20), db: Session = Depends(get_db)):
    return {"posts": [svc.post_to_dict(db, p, with_content=False) for p in svc.related_posts(db, post_id, limit)]}


@router.get("/blog/{post_id}/comments")
def post_comments(post_id: int, db: Session = Depends(get_db)):
    return {"comments": svc.approved_thread(db, post_id)}


@router.post("/blog/comments", status_code=status.HTTP_201_CREATED)
def create_comment(body: CommentIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    comment = svc.create_comment(db, user, body.postId, body.content, body.parentId)
    db.commit()
    db.refresh(comment)
    return {**svc.comment_to_dict(comment, {user.id: user.name}), "message": "Comentário enviado para moderação"}


@router.post("/blog/{post_id}/like")
def toggle_like(post_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    liked = svc.toggle_like(db, user, post_id)
    db.commit()
    return {"liked": liked, "count": svc.like_count(db, post_id)}


@router.get("/blog/{post_id}/likes/count")
def like_count(post_id: int, db: Session = Depends(get_db)):
    return {"count": svc.like_count(db, post_id)}


@router.get("/blog/{post_id}/likes/status")
def like_status(post_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"liked": svc.has_liked(db, user, post_id)}


@router.post("/analytics/track-view")
def track_view(body: TrackViewIn, db: Session = Depends(get_db)):
    row = svc.track_view(db, body.postId)
    db.commit()
    return {"success": True, "views": row.views}


@router.post("/analytics/track-share")
def track_share(body: TrackShareIn, db: Session = Depends(get_db)):
    row = svc.track_share(db, body.postId, body.platform)
    db.commit()
    return {"success": True, "shares": row.shares}


# -------------------- admin: posts --------------------
@router.get("/admin/blog")
def admin_list(
    published: bool | None = None,
    search: str | None = None,
    tag: str | None = None,
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return svc.list_posts(db, published=published, search=search, tag=tag, skip=skip, take=take)


@router.post("/admin/blog", status_code=status.HTTP_201_CREATED)
def admin_create(body: PostIn, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    post = svc.create_post(db, admin, body.model_dump())
    db.commit()
    db.refresh(post)
    return svc.post_to_dict(db, post)


@router.get("/admin/blog/{post_id}")
def admin_get(post_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    return svc.post_to_dict(db, svc.get_post(db, post_id))


@router.put("/admin/blog/{post_id}")
def admin_update(post_id: int, body: PostUpdateIn, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    post = svc.update_post(db, post_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(post)
    return svc.post_to_dict(db, post)


@router.patch("/admin/blog/{post_id}/publish")
def admin_toggle_publish(post_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    post = svc.toggle_publish(db, post_id)
    db.commit()
    db.refresh(post)
    return svc.post_to_dict(db, post)


@router.delete("/admin/blog/{post_id}")
def admin_delete(post_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    svc.delete_post(db, post_id)
    db.commit()
    return {"success": True}


# -------------------- admin: comentários --------------------
@router.get("/admin/comments")
def admin_comments(
    postId: int | None = None,
    approved: bool | None = None,
    search: str | None = None,
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows, total = svc.list_comments(db, post_id=postId, approved=approved, search=search, skip=skip, take=take)
    return {"comments": [svc.comment_to_dict(c) for c in rows], "total": total}


@router.put("/admin/comments/{comment_id}")
def admin_update_comment(
    comment_id: int, body: CommentUpdateIn, _: User = Depends(require_admin), db: Session = Depends(get_db)
):
    comment = svc.update_comment(db, comment_id, body.model_dump(exclude_unset=True))
    db.commit()
    return svc.comment_to_dict(comment)


@router.put("/admin/comments/{comment_id}/approve")
def admin_approve_comment(comment_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    comment = svc.approve_comment(db, comment_id)
    db.commit()
    return svc.comment_to_dict(comment)


@router.delete("/admin/comments/{comment_id}")
def admin_delete_comment(comment_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    svc.delete_comment(db, comment_id)
    db.commit()
    return {"success": True}


# -------------------- admin: analytics --------------------
@router.get("/admin/analytics/blog-overview")
def admin_blog_overview(
    days: int = Query(30, ge=1, le=365), _: User = Depends(require_admin), db: Session = Depends(get_db)
):
    return svc.blog_overview(db, days)
