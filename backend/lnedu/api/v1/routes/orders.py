# backend/lnedu/api/v1/routes/orders.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from lnedu.api.v1.deps import get_current_user, get_optional_user, is_admin, require_admin
from lnedu.core.exceptions import GatewayError, NotFoundError
from lnedu.core.logger import get_logger
from lnedu.core.security import issue_tokens
from lnedu.database.session import get_db
from lnedu.models.enums import OrderStatus, PaymentMethod, PaymentStatus
from lnedu.models.order import Order
from lnedu.models.user import User
from lnedu.schemas.checkout import CheckoutIn, CourseCheckoutIn, OrderStatusIn, RefundIn
from lnedu.services import orders as svc
from lnedu.services.gateway import AsaasClient, get_gateway
from lnedu.services.users import register_user

log = get_logger("routes.orders")

router = APIRouter(tags=["orders"])


@router.post("/checkout", status_code=status.HTTP_201_CREATED)
def checkout(body: CheckoutIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    items = [svc.resolve_item(db, it.type, it.id) for it in body.items]
    order = svc.create_order(
        db,
        user_id=user.id,
        items=items,
        payment_method=body.paymentMethod,
        customer=body.customer.model_dump(),
    )
    payment = svc.start_payment(order)
    db.commit()
    db.refresh(order)
    return {
        "order": {
            "id": order.id,
            "totalAmount": order.total_amount,
            "status": order.status.value,
            "paymentStatus": order.payment_status.value,
            "items": [svc.order_item_to_dict(i) for i in order.items],
        },
        "payment": payment,
    }


@router.post("/checkout/create")
def checkout_create(
    body: CourseCheckoutIn,
    request: Request,
    user: User | None = Depends(get_optional_user),
    gateway: AsaasClient | None = Depends(get_gateway),
    db: Session = Depends(get_db),
):
    tokens = None
    if user is None:
        if not body.password:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Não autenticado")
        user = register_user(db, body.customer.name, body.customer.email, body.password)
        tokens = issue_tokens(user)

    try:
        result = svc.create_course_checkout(
            db,
            gateway,
            user_id=user.id,
            course_id=body.courseId,
            payment_method=PaymentMethod(body.paymentMethod),
            customer=body.customer.model_dump(),
            credit_card=body.creditCard.model_dump() if body.creditCard else None,
            installments=body.installments,
            remote_ip=request.client.host if request.client else None,
        )
    except GatewayError as e:
        log.error(f"[CHECKOUT] falha no gateway para user {user.id}: {e.message}")
        raise

    if tokens:
        result["auth"] = tokens
    return result


@router.get("/checkout/status/{order_id}")
def checkout_status(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = db.query(Order).filter(Order.id == order_id, Order.user_id == user.id).first()
    if not order:
        raise NotFoundError("Pedido não encontrado")
    return {
        "orderId": order.id,
        "status": order.status.value,
        "paymentStatus": order.payment_status.value,
        "paymentMethod": order.payment_method.value if order.payment_method else None,
        "totalAmount": order.total_amount,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
        "items": [svc.order_item_to_dict(i) for i in order.items],
        "pixCode": order.pix_code,
        "boletoUrl": order.boleto_url,
    }


@router.get("/orders/{order_id}")
def get_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Pedido não encontrado")
    if order.user_id != user.id and not is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acesso negado")
    return svc.order_to_dict(order)


@router.get("/student/orders")
def my_orders(
    status_: OrderStatus | None = Query(default=None, alias="status"),
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows, total = svc.list_orders(db, user_id=user.id, status=status_, skip=skip, take=take)
    return {"orders": [svc.order_to_dict(o) for o in rows], "total": total}


@router.get("/admin/orders")
def admin_orders(
    status_: OrderStatus | None = Query(default=None, alias="status"),
    payment_status: PaymentStatus | None = Query(default=None, alias="paymentStatus"),
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows, total = svc.list_orders(db, status=status_, payment_status=payment_status, skip=skip, take=take)
    return {"orders": [svc.order_to_dict(o) for o in rows], "total": total}


@router.patch("/admin/orders/{order_id}/status")
def admin_order_status(
    order_id: int,
    body: OrderStatusIn,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Pedido não encontrado")
    svc.admin_update_status(db, order, status=body.status, payment_status=body.paymentStatus)
    db.commit()
    db.refresh(order)
    return svc.order_to_dict(order)


@router.post("/admin/orders/{order_id}/refund")
def admin_refund(
    order_id: int,
    body: RefundIn | None = None,
    _: User = Depends(require_admin),
    gateway: AsaasClient | None = Depends(get_gateway),
    db: Session = Depends(get_db),
):
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Pedido não encontrado")
    svc.refund_order(db, order, gateway, description=body.description if body else None)
    db.commit()
    db.refresh(order)
    return svc.order_to_dict(order)
