# backend/lnedu/services/users.py
from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lnedu.core.exceptions import BusinessRuleError
from lnedu.core.security import hash_password, verify_password
from lnedu.models.enums import UserRole
from lnedu.models.user import User


def register_user(db: Session, name: str, email: str, password: str, role: UserRole = UserRole.STUDENT) -> User:
    """Cria o usuário; e-mail duplicado é detectado pelo índice unique."""
    user = User(name=name, email=email.lower(), password_hash=hash_password(password), role=role)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BusinessRuleError("E-mail já cadastrado")
    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def user_to_dict(user: User) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role.value}
