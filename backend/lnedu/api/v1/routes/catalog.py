# backend/lnedu/api/v1/routes/catalog.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from lnedu.api.v1.deps import get_current_user, require_admin
from lnedu.core.exceptions import PermissionDeniedError
from lnedu.database.session import get_db
from lnedu.models.user import User
from lnedu.schemas.catalog import CourseIn, EbookIn, EbookUpdateIn, PaperIn
from lnedu.services import catalog
from lnedu.services.orders import add_ebook_to_library, add_paper_to_library, has_user_purchased_ebook

router = APIRouter(tags=["catalog"])


def _listing(db: Session, kind: str, search: str | None, skip: int, take: int) -> dict:
    rows, total = catalog.list_items(db, kind, search=search, skip=skip, take=take)
    return {"items": [catalog.item_to_dict(kind, r) for r in rows], "total": total}


# -------------------- papers --------------------
@router.get("/papers")
def list_papers(
    search: str | None = None,
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return _listing(db, "paper", search, skip, take)


@router.get("/papers/{paper_id}")
def get_paper(paper_id: int, db: Session = Depends(get_db)):
    return catalog.item_to_dict("paper", catalog.get_item(db, "paper", paper_id))


@router.get("/papers/{paper_id}/download")
def download_paper(paper_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    paper = catalog.get_item(db, "paper", paper_id)
    if paper.price != 0:
        raise PermissionDeniedError("Trabalho pago: adquira pelo checkout")
    item = add_paper_to_library(db, user.id, paper)
    db.commit()
    return {"downloadUrl": item.download_url}


@router.post("/admin/papers", status_code=status.HTTP_201_CREATED)
def create_paper(body: PaperIn, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    item = catalog.create_item(db, "paper", body.model_dump())
    db.commit()
    db.refresh(item)
    return catalog.item_to_dict("paper", item)


# -------------------- courses --------------------
@router.get("/courses")
def list_courses(
    search: str | None = None,
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return _listing(db, "course", search, skip, take)


@router.get("/courses/{course_id}")
def get_course(course_id: int, db: Session = Depends(get_db)):
    return catalog.item_to_dict("course", catalog.get_item(db, "course", course_id))


@router.post("/admin/courses", status_code=status.HTTP_201_CREATED)
def create_course(body: CourseIn, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    item = catalog.create_item(db, "course", body.model_dump())
    db.commit()
    db.refresh(item)
    return catalog.item_to_dict("course", item)


# -------------------- ebooks --------------------
@router.get("/ebooks")
def list_ebooks(
    search: str | None = None,
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return _listing(db, "ebook", search, skip, take)


@router.get("/ebooks/{ebook_id}")
def get_ebook(ebook_id: int, db: Session = Depends(get_db)):
    return catalog.get_ebook_cached(db, ebook_id)


@router.get("/ebooks/{ebook_id}/download")
def download_ebook(ebook_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ebook = catalog.get_item(db, "ebook", ebook_id)
    if not has_user_purchased_ebook(db, user.id, ebook.id):
        raise PermissionDeniedError("Você precisa comprar este e-book para fazer o download")
    item = add_ebook_to_library(db, user.id, ebook)
    db.commit()
    return {
        "downloadUrl": item.download_url,
        "expiresAt": item.expires_at.isoformat() if item.expires_at else None,
    }


@router.post("/admin/ebooks", status_code=status.HTTP_201_CREATED)
def create_ebook(body: EbookIn, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    item = catalog.create_item(db, "ebook", body.model_dump())
    db.commit()
    db.refresh(item)
    return catalog.item_to_dict("ebook", item)


@router.put("/admin/ebooks/{ebook_id}")
def update_ebook(ebook_id: int, body: EbookUpdateIn, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    ebook = catalog.update_ebook(db, ebook_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(ebook)
    return catalog.item_to_dict("ebook", ebook)
