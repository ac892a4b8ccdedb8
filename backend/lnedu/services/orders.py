# backend/lnedu/services/orders.py
"""
Ciclo de vida do pedido e do pagamento.

paymentStatus só muda pela tabela PAYMENT_TRANSITIONS e o status do pedido
é sempre derivado dele (ORDER_STATUS_FOR), então CONFIRMED implica COMPLETED.
CONFIRMED só sai por estorno (refund=True). Confirmar libera matrícula e
biblioteca de forma idempotente.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from lnedu.core.config import settings
from lnedu.core.exceptions import BusinessRuleError, InvalidTransitionError, NotFoundError
from lnedu.core.logger import get_logger
from lnedu.models.catalog import Course, Ebook, Paper
from lnedu.models.entitlement import CourseEnrollment, LibraryItem
from lnedu.models.enums import (
    LibraryItemType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    WebhookEventStatus,
)
from lnedu.models.order import Order, OrderItem

log = get_logger("orders")

PS = PaymentStatus

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PS.PENDING: frozenset({PS.PROCESSING, PS.PAID, PS.CONFIRMED, PS.OVERDUE, PS.FAILED, PS.CANCELED}),
    PS.PROCESSING: frozenset({PS.PAID, PS.CONFIRMED, PS.FAILED, PS.CANCELED}),
    PS.PAID: frozenset({PS.CONFIRMED, PS.FAILED, PS.CANCELED}),
    PS.OVERDUE: frozenset({PS.CONFIRMED, PS.CANCELED}),
    PS.CONFIRMED: frozenset(),
    PS.FAILED: frozenset(),
    PS.CANCELED: frozenset(),
    PS.REFUNDED: frozenset(),
}

# estorno: única saída de um pagamento já recebido
REFUND_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PS.PAID: frozenset({PS.CANCELED, PS.REFUNDED}),
    PS.CONFIRMED: frozenset({PS.CANCELED, PS.REFUNDED}),
}

ORDER_STATUS_FOR: dict[PaymentStatus, OrderStatus] = {
    PS.PENDING: OrderStatus.PENDING,
    PS.PROCESSING: OrderStatus.PROCESSING,
    PS.PAID: OrderStatus.PROCESSING,
    PS.CONFIRMED: OrderStatus.COMPLETED,
    PS.OVERDUE: OrderStatus.PENDING,
    PS.FAILED: OrderStatus.CANCELED,
    PS.CANCELED: OrderStatus.CANCELED,
    PS.REFUNDED: OrderStatus.CANCELED,
}

# /webhooks/payment
PAYMENT_WEBHOOK_TARGETS = {
    "paid": PS.CONFIRMED,
    "failed": PS.CANCELED,
    "canceled": PS.CANCELED,
}

# /webhooks/asaas: evento -> (paymentStatus alvo, é estorno?)
ASAAS_EVENT_TARGETS: dict[str, tuple[PaymentStatus, bool]] = {
    "PAYMENT_RECEIVED": (PS.CONFIRMED, False),
    "PAYMENT_CONFIRMED": (PS.CONFIRMED, False),
    "PAYMENT_OVERDUE": (PS.CANCELED, False),
    "PAYMENT_DELETED": (PS.CANCELED, False),
    "PAYMENT_REFUNDED": (PS.CANCELED, True),
    "PAYMENT_REFUND_IN_PROGRESS": (PS.CANCELED, True),
}

PAID_EBOOK_ACCESS_DAYS = 365

CATALOG_MODELS = {
    "paper": (Paper, "paper_id"),
    "course": (Course, "course_id"),
    "ebook": (Ebook, "ebook_id"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -------------------- transições --------------------
def can_transition(current: PaymentStatus, target: PaymentStatus, *, refund: bool = False) -> bool:
    table = REFUND_TRANSITIONS if refund else PAYMENT_TRANSITIONS
    return target in table.get(current, frozenset())


def transition_payment(db: Session, order: Order, target: PaymentStatus, *, refund: bool = False) -> Order:
    current = order.payment_status
    if not can_transition(current, target, refund=refund):
        raise InvalidTransitionError("Pedido", current.value, target.value)

    order.payment_status = target
    order.status = ORDER_STATUS_FOR[target]
    if target == PS.CONFIRMED:
        grant_entitlements(db, order)
    log.info(f"pedido {order.id}: {current.value} -> {target.value} (status {order.status.value})")
    return order


def _apply_event(db: Session, order: Order, target: PaymentStatus, *, refund: bool = False) -> WebhookEventStatus:
    # replay de confirmação: só revalida matrícula/biblioteca
    if target == PS.CONFIRMED and order.payment_status == PS.CONFIRMED:
        grant_entitlements(db, order)
        return WebhookEventStatus.PROCESSED
    try:
        transition_payment(db, order, target, refund=refund)
    except InvalidTransitionError as e:
        log.info(f"evento ignorado para pedido {order.id}: {e.message}")
        return WebhookEventStatus.IGNORED
    return WebhookEventStatus.PROCESSED


def _get_order(db: Session, order_id) -> Order:
    try:
        oid = int(order_id)
    except (TypeError, ValueError):
        raise NotFoundError("Pedido não encontrado")
    order = db.get(Order, oid)
    if not order:
        raise NotFoundError("Pedido não encontrado")
    return order


def process_payment_webhook(db: Session, order_id, status: str) -> tuple[Order, WebhookEventStatus]:
    target = PAYMENT_WEBHOOK_TARGETS.get(status)
    if target is None:
        raise BusinessRuleError(f"Status de pagamento desconhecido: {status}")
    order = _get_order(db, order_id)
    return order, _apply_event(db, order, target)


def process_asaas_event(db: Session, event: str, external_reference) -> tuple[Order | None, WebhookEventStatus]:
    mapped = ASAAS_EVENT_TARGETS.get(event)
    if mapped is None:
        return None, WebhookEventStatus.IGNORED
    order = _get_order(db, external_reference)
    target, refund = mapped
    return order, _apply_event(db, order, target, refund=refund)


def admin_update_status(
    db: Session,
    order: Order,
    *,
    status: OrderStatus | None = None,
    payment_status: PaymentStatus | None = None,
) -> Order:
    if payment_status is not None:
        return transition_payment(db, order, payment_status)
    if status is None:
        raise BusinessRuleError("Informe status ou paymentStatus")

    if status == OrderStatus.COMPLETED:
        return transition_payment(db, order, PS.CONFIRMED)
    if status == OrderStatus.CANCELED:
        return transition_payment(db, order, PS.CANCELED)

    # PENDING <-> PROCESSING enquanto o pagamento está em aberto
    target = PS.PROCESSING if status == OrderStatus.PROCESSING else PS.PENDING
    if order.payment_status not in (PS.PENDING, PS.PROCESSING):
        raise InvalidTransitionError("Pedido", order.status.value, status.value)
    order.payment_status = target
    order.status = status
    return order


def refund_order(db: Session, order: Order, gateway=None, *, description: str | None = None) -> Order:
    if not can_transition(order.payment_status, PS.REFUNDED, refund=True):
        raise InvalidTransitionError("Pedido", order.payment_status.value, PS.REFUNDED.value)
    if order.charge_id:
        if gateway is None:
            raise BusinessRuleError("Integração de pagamento não configurada", status_code=500)
        gateway.refund_payment(order.charge_id, description=description)
    return transition_payment(db, order, PS.REFUNDED, refund=True)


# -------------------- criação --------------------
def resolve_item(db: Session, item_type: str, item_id) -> OrderItem:
    try:
        model, fk = CATALOG_MODELS[item_type]
    except KeyError:
        raise BusinessRuleError(f"Tipo de item inválido: {item_type}")
    product = db.get(model, int(item_id))
    if not product:
        raise NotFoundError(f"Item não encontrado: {item_type} {item_id}")
    return OrderItem(
        title=product.title,
        description=product.description,
        price=product.price,
        **{fk: product.id},
    )


def create_order(
    db: Session,
    *,
    user_id: int | None,
    items: list[OrderItem],
    payment_method: PaymentMethod,
    customer: dict,
) -> Order:
    if not items:
        raise BusinessRuleError("Pedido sem itens")
    order = Order(
        user_id=user_id,
        status=OrderStatus.PENDING,
        payment_status=PS.PENDING,
        payment_method=payment_method,
        total_amount=sum(i.price for i in items),
        customer_name=customer["name"],
        customer_email=customer["email"],
        customer_cpf_cnpj=customer["cpfCnpj"],
        customer_phone=customer.get("phone") or customer.get("mobilePhone"),
        items=items,
    )
    db.add(order)
    db.flush()
    return order


def generate_pix_code(order: Order) -> str:
    amount = f"{order.total_amount / 100:.2f}".zfill(10)
    pix = (
        f"00020126580014BR.GOV.BCB.PIX0136{order.id}"
        f"52040000530398654{amount}"
        "5802BR5913LN_EDUCACIONAL6009SAO_PAULO62070503***6304"
    )
    order.pix_code = pix
    return pix


def generate_boleto_url(order: Order) -> str:
    url = f"{settings.BOLETO_BASE_URL}/{order.id}"
    order.boleto_url = url
    return url


def payment_redirect_url(order: Order) -> str:
    return f"{settings.PAYMENT_REDIRECT_URL}/{order.id}"


def start_payment(order: Order) -> dict:
    """Dados de pagamento do checkout simples (sem gateway)."""
    data: dict = {"orderId": order.id, "paymentMethod": order.payment_method.value}
    if order.payment_method == PaymentMethod.PIX:
        data["pixCode"] = generate_pix_code(order)
    elif order.payment_method == PaymentMethod.BOLETO:
        data["boletoUrl"] = generate_boleto_url(order)
    else:
        data["redirectUrl"] = payment_redirect_url(order)
    return data


def _due_date(method: PaymentMethod, now: datetime | None = None) -> str:
    now = now or datetime.now()
    if method == PaymentMethod.BOLETO:
        now += timedelta(days=7)
    elif method == PaymentMethod.PIX:
        now += timedelta(minutes=30)
    return now.date().isoformat()


def create_course_checkout(
    db: Session,
    gateway,
    *,
    user_id: int,
    course_id: int,
    payment_method: PaymentMethod,
    customer: dict,
    credit_card: dict | None = None,
    installments: int | None = None,
    remote_ip: str | None = None,
) -> dict:
    course = db.get(Course, course_id)
    if not course:
        raise NotFoundError("Curso não encontrado")

    enrolled = (
        db.query(CourseEnrollment.id)
        .filter(CourseEnrollment.user_id == user_id, CourseEnrollment.course_id == course.id)
        .first()
    )
    if enrolled:
        raise BusinessRuleError("Você já está matriculado neste curso")

    if gateway is None:
        raise BusinessRuleError("Integração de pagamento não configurada", status_code=500)

    gateway_customer = gateway.create_or_update_customer({
        k: v for k, v in customer.items() if v is not None
    })

    order = create_order(
        db,
        user_id=user_id,
        items=[resolve_item(db, "course", course.id)],
        payment_method=payment_method,
        customer=customer,
    )
    # o pedido fica gravado PENDING mesmo se a cobrança falhar
    db.commit()

    charge_data = {
        "customer": gateway_customer["id"],
        "billingType": payment_method.value,
        "value": course.price / 100,
        "dueDate": _due_date(payment_method),
        "description": f"Curso: {course.title}",
        "externalReference": str(order.id),
    }
    count = installments or 1
    if count > 1:
        charge_data["installmentCount"] = count
        charge_data["installmentValue"] = round(course.price / 100 / count, 2)

    charge = gateway.create_charge(charge_data)
    order.charge_id = charge["id"]
    result = {
        "success": True,
        "orderId": order.id,
        "chargeId": charge["id"],
        "paymentMethod": payment_method.value,
    }

    if payment_method == PaymentMethod.CREDIT_CARD and credit_card:
        paid = gateway.pay_with_credit_card(charge["id"], {
            "creditCard": credit_card,
            "creditCardHolderInfo": {
                "name": customer["name"],
                "email": customer["email"],
                "cpfCnpj": customer["cpfCnpj"],
                "postalCode": customer.get("postalCode") or "00000000",
                "addressNumber": customer.get("addressNumber") or "S/N",
                "phone": customer.get("phone") or customer.get("mobilePhone") or "0000000000",
            },
            "remoteIp": remote_ip,
        })
        status = paid.get("status")
        if status in ("CONFIRMED", "RECEIVED"):
            transition_payment(db, order, PS.CONFIRMED)
        result["status"] = status

    elif payment_method == PaymentMethod.PIX:
        pix = gateway.get_pix_qr_code(charge["id"])
        order.pix_code = pix.get("payload")
        result["pix"] = {
            "payload": pix.get("payload"),
            "qrCodeImage": pix.get("encodedImage"),
            "expirationDate": pix.get("expirationDate"),
        }

    elif payment_method == PaymentMethod.BOLETO:
        order.boleto_url = charge.get("bankSlipUrl")
        result["boleto"] = {"url": charge.get("bankSlipUrl"), "barcode": charge.get("invoiceNumber")}

    db.commit()
    return result


# -------------------- direitos de acesso --------------------
def _library_entry(db: Session, user_id: int, item_type: LibraryItemType, item_id: int) -> LibraryItem | None:
    return (
        db.query(LibraryItem)
        .filter(LibraryItem.user_id == user_id, LibraryItem.item_type == item_type, LibraryItem.item_id == item_id)
        .first()
    )


def ensure_enrollment(db: Session, user_id: int, course_id: int) -> CourseEnrollment:
    found = (
        db.query(CourseEnrollment)
        .filter(CourseEnrollment.user_id == user_id, CourseEnrollment.course_id == course_id)
        .first()
    )
    if found:
        return found
    enrollment = CourseEnrollment(user_id=user_id, course_id=course_id, progress=0)
    db.add(enrollment)
    db.flush()
    log.info(f"matrícula criada: user={user_id} course={course_id}")
    return enrollment


def grant_entitlements(db: Session, order: Order) -> None:
    """Biblioteca para todo item + matrícula para cursos. Pode rodar várias vezes."""
    if order.user_id is None:
        return
    for item in order.items:
        if item.course_id:
            ensure_enrollment(db, order.user_id, item.course_id)
            if not _library_entry(db, order.user_id, LibraryItemType.COURSE_MATERIAL, item.course_id):
                db.add(LibraryItem(
                    user_id=order.user_id,
                    item_type=LibraryItemType.COURSE_MATERIAL,
                    item_id=item.course_id,
                    download_url=f"{settings.PUBLIC_DOWNLOAD_URL}/{item.course_id}",
                ))
        elif item.ebook_id:
            ebook = db.get(Ebook, item.ebook_id)
            if ebook:
                add_ebook_to_library(db, order.user_id, ebook)
        elif item.paper_id:
            paper = db.get(Paper, item.paper_id)
            if paper:
                add_paper_to_library(db, order.user_id, paper)
    db.flush()


def has_user_purchased_ebook(db: Session, user_id: int, ebook_id: int) -> bool:
    ebook = db.get(Ebook, ebook_id)
    if not ebook:
        return False
    if ebook.price == 0:
        return True
    found = (
        db.query(OrderItem.id)
        .join(Order, OrderItem.order_id == Order.id)
        .filter(
            OrderItem.ebook_id == ebook_id,
            Order.user_id == user_id,
            Order.status == OrderStatus.COMPLETED,
            Order.payment_status == PS.CONFIRMED,
        )
        .first()
    )
    return found is not None


def add_ebook_to_library(db: Session, user_id: int, ebook: Ebook) -> LibraryItem:
    existing = _library_entry(db, user_id, LibraryItemType.EBOOK, ebook.id)
    if existing:
        return existing
    item = LibraryItem(
        user_id=user_id,
        item_type=LibraryItemType.EBOOK,
        item_id=ebook.id,
        download_url=ebook.file_url,
        # grátis não expira; pago vale 1 ano
        expires_at=None if ebook.price == 0 else _utcnow() + timedelta(days=PAID_EBOOK_ACCESS_DAYS),
    )
    db.add(item)
    db.flush()
    return item


def add_paper_to_library(db: Session, user_id: int, paper: Paper) -> LibraryItem:
    existing = _library_entry(db, user_id, LibraryItemType.PAPER, paper.id)
    if existing:
        return existing
    item = LibraryItem(
        user_id=user_id,
        item_type=LibraryItemType.PAPER,
        item_id=paper.id,
        download_url=paper.file_url or f"{settings.PUBLIC_DOWNLOAD_URL}/{paper.id}",
    )
    db.add(item)
    db.flush()
    return item


# -------------------- consultas --------------------
def list_orders(
    db: Session,
    *,
    user_id: int | None = None,
    status: OrderStatus | None = None,
    payment_status: PaymentStatus | None = None,
    skip: int = 0,
    take: int = 20,
) -> tuple[list[Order], int]:
    q = db.query(Order)
    if user_id is not None:
        q = q.filter(Order.user_id == user_id)
    if status is not None:
        q = q.filter(Order.status == status)
    if payment_status is not None:
        q = q.filter(Order.payment_status == payment_status)
    total = q.count()
    rows = q.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip).limit(take).all()
    return rows, total


def order_item_to_dict(item: OrderItem) -> dict:
    return {
        "id": item.id,
        "paperId": item.paper_id,
        "courseId": item.course_id,
        "ebookId": item.ebook_id,
        "title": item.title,
        "description": item.description,
        "price": item.price,
    }


def order_to_dict(order: Order) -> dict:
    return {
        "id": order.id,
        "userId": order.user_id,
        "status": order.status.value,
        "paymentStatus": order.payment_status.value,
        "paymentMethod": order.payment_method.value if order.payment_method else None,
        "totalAmount": order.total_amount,
        "customerName": order.customer_name,
        "customerEmail": order.customer_email,
        "pixCode": order.pix_code,
        "boletoUrl": order.boleto_url,
        "chargeId": order.charge_id,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
        "items": [order_item_to_dict(i) for i in order.items],
    }
