# backend/lnedu/api/v1/routes/auth.py
import jwt
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from lnedu.api.v1.deps import get_current_user
from lnedu.core.security import create_access_token, decode_token, issue_tokens
from lnedu.database.session import get_db
from lnedu.models.user import User
from lnedu.schemas.auth import LoginIn, RefreshIn, RegisterIn
from lnedu.services.users import authenticate, register_user, user_to_dict

router = APIRouter(tags=["auth"])


@router.post("/auth/register", status_code=status.HTTP_201_CREATED)
def register(body: RegisterIn, db: Session = Depends(get_db)):
    user = register_user(db, body.name, body.email, body.password)
    return {"user": user_to_dict(user), **issue_tokens(user)}


@router.post("/auth/login")
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = authenticate(db, body.email, body.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciais inválidas")
    return {"user": user_to_dict(user), **issue_tokens(user)}


@router.post("/auth/refresh")
def refresh(request: Request, body: RefreshIn | None = None, db: Session = Depends(get_db)):
    # aceita no JSON body ou em cookie
    rtok = (body and body.refresh_token) or request.cookies.get("refresh_token")
    if not rtok:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="refresh_token ausente")
    try:
        data = decode_token(rtok, expect="refresh")
        user = db.get(User, int(data["sub"]))
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="refresh inválido")
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="refresh inválido")

    extra = {"email": user.email, "name": user.name, "role": user.role.value}
    return {"access_token": create_access_token(sub=str(user.id), extra=extra), "token_type": "bearer"}


@router.get("/auth/me")
def me(user: User = Depends(get_current_user)):
    return user_to_dict(user)
