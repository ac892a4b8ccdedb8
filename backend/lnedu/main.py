from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lnedu.core.config import settings
from lnedu.core.exceptions import DomainError
from lnedu.core.logger import get_logger
from lnedu.database.init_db import init_db
from lnedu.services.anti_spam import get_anti_spam

log = get_logger("main")

API_PREFIX = "/api/v1"


# -----------------------------------------------------------------------------
# Lifespan: tabelas + limpeza periódica do anti-spam
# -----------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    spam = get_anti_spam()
    spam.start_cleanup_timer()
    log.info(f"LN Educacional API no ar (env={settings.ENV})")
    try:
        yield
    finally:
        spam.stop_cleanup_timer()


# -----------------------------------------------------------------------------
# App
# -----------------------------------------------------------------------------
app = FastAPI(title="LN Educacional API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------------------------------------------------------------
# Erros
# -----------------------------------------------------------------------------
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        errors.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Dados inválidos", "errors": errors},
    )


# -----------------------------------------------------------------------------
# Routers
# -----------------------------------------------------------------------------
from lnedu.api.v1.routes import (  # noqa: E402
    auth, blog, catalog, collaborators, contact, custom_papers, newsletter, orders,
)
from lnedu.api.v1.webhooks import payments as payment_webhooks  # noqa: E402

app.include_router(auth.router, prefix=API_PREFIX)
app.include_router(catalog.router, prefix=API_PREFIX)
app.include_router(orders.router, prefix=API_PREFIX)
app.include_router(custom_papers.router, prefix=API_PREFIX)
app.include_router(collaborators.router, prefix=API_PREFIX)
app.include_router(contact.router, prefix=API_PREFIX)
app.include_router(blog.router, prefix=API_PREFIX)
app.include_router(newsletter.router, prefix=API_PREFIX)
app.include_router(payment_webhooks.router, prefix=API_PREFIX)


@app.get(f"{API_PREFIX}/health", tags=["health"])
def health():
    return {"status": "ok"}
