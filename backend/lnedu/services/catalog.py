# backend/lnedu/services/catalog.py
from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.orm import Session

from lnedu.core.cache import delete_cache, get_cache, set_cache
from lnedu.core.exceptions import NotFoundError
from lnedu.models.catalog import Course, Ebook, Paper

MODELS = {"paper": Paper, "course": Course, "ebook": Ebook}
LABELS = {"paper": "Trabalho", "course": "Curso", "ebook": "E-book"}


def ebook_cache_key(ebook_id: int) -> str:
    return f"ebook:{ebook_id}"


def list_items(db: Session, kind: str, *, search: str | None = None, skip: int = 0, take: int = 20) -> tuple[list, int]:
    model = MODELS[kind]
    q = db.query(model)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(model.title.ilike(like), model.description.ilike(like)))
    total = q.count()
    rows = q.order_by(model.created_at.desc(), model.id.desc()).offset(skip).limit(take).all()
    return rows, total


def get_item(db: Session, kind: str, item_id: int):
    item = db.get(MODELS[kind], item_id)
    if not item:
        raise NotFoundError(f"{LABELS[kind]} não encontrado")
    return item


def get_ebook_cached(db: Session, ebook_id: int) -> dict:
    cached = get_cache(ebook_cache_key(ebook_id))
    if cached is not None:
        return cached
    data = item_to_dict("ebook", get_item(db, "ebook", ebook_id))
    set_cache(ebook_cache_key(ebook_id), data)
    return data


def create_item(db: Session, kind: str, data: dict):
    model = MODELS[kind]
    fields = {
        "title": data["title"],
        "description": data.get("description") or "",
        "price": data.get("price", 0),
    }
    if kind in ("paper", "ebook"):
        fields["file_url"] = data.get("fileUrl")
    if kind == "ebook":
        fields["author_name"] = data.get("authorName")
        fields["page_count"] = data.get("pageCount")
    item = model(**fields)
    db.add(item)
    db.flush()
    return item


def update_ebook(db: Session, ebook_id: int, data: dict) -> Ebook:
    ebook = get_item(db, "ebook", ebook_id)
    mapping = {
        "title": "title",
        "description": "description",
        "price": "price",
        "fileUrl": "file_url",
        "authorName": "author_name",
        "pageCount": "page_count",
    }
    for key, attr in mapping.items():
        if key in data and data[key] is not None:
            setattr(ebook, attr, data[key])
    delete_cache(ebook_cache_key(ebook.id))
    return ebook


def item_to_dict(kind: str, item) -> dict:
    out = {
        "id": item.id,
        "type": kind,
        "title": item.title,
        "description": item.description,
        "price": item.price,
        "createdAt": item.created_at.isoformat() if item.created_at else None,
    }
    if kind == "ebook":
        out["authorName"] = item.author_name
        out["pageCount"] = item.page_count
    return out
