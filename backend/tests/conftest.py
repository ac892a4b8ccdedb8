import os

# antes de importar o app: nada de Redis, SMTP ou gateway de verdade
for _k in ("REDIS_URL", "SMTP_HOST", "WEBHOOK_SECRET", "ASAAS_WEBHOOK_TOKEN", "ASAAS_API_KEY", "LOG_FILE"):
    os.environ[_k] = ""
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lnedu.core.exceptions import GatewayError
from lnedu.core.security import hash_password, issue_tokens
from lnedu.database.init_db import init_db
from lnedu.database.session import get_db
from lnedu.main import API_PREFIX, app
from lnedu.models.catalog import Course, Ebook, Paper
from lnedu.models.enums import UserRole
from lnedu.models.user import User
from lnedu.services.anti_spam import AntiSpamConfig, AntiSpamService, get_anti_spam
from lnedu.services.gateway import get_gateway

API = API_PREFIX


class Clock:
    """Relógio em ms controlado pelo teste."""

    def __init__(self, start: float = 1_700_000_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeGateway:
    def __init__(self):
        self.calls = []
        self.charges = []
        self.card_status = "CONFIRMED"
        self.fail_on = None

    def _call(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise GatewayError("Erro ao criar cobrança no Asaas: cartão recusado", upstream_status=400)

    def create_or_update_customer(self, customer):
        self._call("create_or_update_customer")
        return {"id": "cus_000001"}

    def create_charge(self, charge):
        self._call("create_charge")
        self.charges.append(charge)
        return {
            "id": f"pay_{len(self.charges)}",
            "status": "PENDING",
            "bankSlipUrl": f"https://sandbox.asaas.com/b/pdf/pay_{len(self.charges)}",
            "invoiceNumber": "00012345",
        }

    def pay_with_credit_card(self, charge_id, payment):
        self._call("pay_with_credit_card")
        return {"id": charge_id, "status": self.card_status}

    def get_pix_qr_code(self, charge_id):
        self._call("get_pix_qr_code")
        return {"payload": "00020101021226880014br.gov.bcb.pix", "encodedImage": "aW1hZ2U=", "expirationDate": "2030-01-01 23:59:59"}

    def refund_payment(self, charge_id, value=None, description=None):
        self._call("refund_payment")
        return {"id": charge_id, "status": "REFUNDED"}


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def spam(clock):
    return AntiSpamService(AntiSpamConfig(), clock=clock)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(session_factory, spam, gateway):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_anti_spam] = lambda: spam
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


# -------------------- dados --------------------
def make_user(db, email, *, name="Aluno Teste", role=UserRole.STUDENT, password="segredo123"):
    user = User(name=name, email=email, password_hash=hash_password(password), role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def headers_for(user):
    return {"Authorization": f"Bearer {issue_tokens(user)['access_token']}"}


@pytest.fixture
def student(db):
    return make_user(db, "maria.silva@gmail.com", name="Maria Silva")


@pytest.fixture
def other_student(db):
    return make_user(db, "joao.souza@gmail.com", name="João Souza")


@pytest.fixture
def admin(db):
    return make_user(db, "admin@lneducacional.com.br", name="Admin LN", role=UserRole.ADMIN)


@pytest.fixture
def student_headers(student):
    return headers_for(student)


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture
def course(db):
    c = Course(title="Metodologia Científica", description="Curso completo", price=19900)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture
def paid_ebook(db):
    e = Ebook(title="Guia do TCC", description="E-book", price=4990, file_url="https://cdn.example.com/tcc.pdf")
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


@pytest.fixture
def free_ebook(db):
    e = Ebook(title="Normas ABNT", description="E-book grátis", price=0, file_url="https://cdn.example.com/abnt.pdf")
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


@pytest.fixture
def paper(db):
    p = Paper(title="Artigo sobre gestão", description="Artigo", price=2990, file_url="https://cdn.example.com/artigo.pdf")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


CUSTOMER = {
    "name": "Maria Silva",
    "email": "maria.silva@gmail.com",
    "cpfCnpj": "12345678909",
    "phone": "11999998888",
}


def make_order(db, user, *products, method=None):
    """products: pares (tipo, modelo do catálogo)."""
    from lnedu.models.enums import PaymentMethod
    from lnedu.services.orders import create_order, resolve_item

    items = [resolve_item(db, kind, p.id) for kind, p in products]
    order = create_order(
        db,
        user_id=user.id if user else None,
        items=items,
        payment_method=method or PaymentMethod.PIX,
        customer=CUSTOMER,
    )
    db.commit()
    db.refresh(order)
    return order
