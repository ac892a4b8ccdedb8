import pytest

from conftest import API, headers_for, make_order
from lnedu.core.exceptions import InvalidTransitionError
from lnedu.models.entitlement import CourseEnrollment, LibraryItem
from lnedu.models.enums import LibraryItemType, OrderStatus, PaymentStatus
from lnedu.services import orders as svc

PS = PaymentStatus


@pytest.mark.parametrize("current,target,allowed", [
    (PS.PENDING, PS.CONFIRMED, True),
    (PS.PENDING, PS.OVERDUE, True),
    (PS.OVERDUE, PS.CONFIRMED, True),
    (PS.PROCESSING, PS.PENDING, False),
    (PS.CONFIRMED, PS.FAILED, False),
    (PS.CONFIRMED, PS.PENDING, False),
    (PS.CANCELED, PS.CONFIRMED, False),
    (PS.REFUNDED, PS.CONFIRMED, False),
])
def test_payment_transitions(current, target, allowed):
    assert svc.can_transition(current, target) is allowed


def test_refund_only_from_received_payment():
    assert svc.can_transition(PS.CONFIRMED, PS.REFUNDED, refund=True)
    assert svc.can_transition(PS.PAID, PS.CANCELED, refund=True)
    assert not svc.can_transition(PS.PENDING, PS.REFUNDED, refund=True)
    assert not svc.can_transition(PS.CONFIRMED, PS.REFUNDED)


def test_order_status_follows_payment_status():
    assert svc.ORDER_STATUS_FOR[PS.CONFIRMED] == OrderStatus.COMPLETED
    assert all(v != OrderStatus.COMPLETED for k, v in svc.ORDER_STATUS_FOR.items() if k != PS.CONFIRMED)


def test_illegal_transition_leaves_order_untouched(db, student, course):
    order = make_order(db, student, ("course", course))
    svc.transition_payment(db, order, PS.FAILED)
    db.commit()

    with pytest.raises(InvalidTransitionError):
        svc.transition_payment(db, order, PS.CONFIRMED)
    assert order.payment_status == PS.FAILED
    assert order.status == OrderStatus.CANCELED


def test_grant_entitlements_is_idempotent(db, student, course, paid_ebook):
    order = make_order(db, student, ("course", course), ("ebook", paid_ebook))
    svc.transition_payment(db, order, PS.CONFIRMED)
    svc.grant_entitlements(db, order)
    db.commit()

    assert db.query(CourseEnrollment).filter_by(user_id=student.id).count() == 1
    items = db.query(LibraryItem).filter_by(user_id=student.id).all()
    assert sorted(i.item_type.value for i in items) == ["COURSE_MATERIAL", "EBOOK"]
    ebook_entry = next(i for i in items if i.item_type == LibraryItemType.EBOOK)
    assert ebook_entry.expires_at is not None


# -------------------- e-books --------------------
def test_free_ebook_counts_as_purchased(db, student, free_ebook):
    assert svc.has_user_purchased_ebook(db, student.id, free_ebook.id) is True
    entry = svc.add_ebook_to_library(db, student.id, free_ebook)
    assert entry.expires_at is None


def test_paid_ebook_requires_confirmed_order(db, student, paid_ebook):
    assert svc.has_user_purchased_ebook(db, student.id, paid_ebook.id) is False
    order = make_order(db, student, ("ebook", paid_ebook))
    assert svc.has_user_purchased_ebook(db, student.id, paid_ebook.id) is False

    svc.transition_payment(db, order, PS.CONFIRMED)
    db.commit()
    assert svc.has_user_purchased_ebook(db, student.id, paid_ebook.id) is True
    assert svc.has_user_purchased_ebook(db, student.id, 424242) is False


def test_ebook_download_needs_purchase(client, db, student, student_headers, paid_ebook):
    url = f"{API}/ebooks/{paid_ebook.id}/download"
    assert client.get(url, headers=student_headers).status_code == 403

    order = make_order(db, student, ("ebook", paid_ebook))
    svc.transition_payment(db, order, PS.CONFIRMED)
    db.commit()

    r = client.get(url, headers=student_headers)
    assert r.status_code == 200
    assert r.json()["downloadUrl"] == paid_ebook.file_url
    assert r.json()["expiresAt"] is not None


def test_free_paper_download_adds_to_library(client, db, student, student_headers, paper):
    assert client.get(f"{API}/papers/{paper.id}/download", headers=student_headers).status_code == 403

    paper.price = 0
    db.commit()
    r = client.get(f"{API}/papers/{paper.id}/download", headers=student_headers)
    assert r.status_code == 200
    assert db.query(LibraryItem).filter_by(user_id=student.id, item_type=LibraryItemType.PAPER).count() == 1


# -------------------- consultas --------------------
def test_order_visible_to_owner_and_admin_only(client, db, student, other_student, admin_headers, course):
    order = make_order(db, student, ("course", course))
    url = f"{API}/orders/{order.id}"

    r = client.get(url, headers=headers_for(student))
    assert r.status_code == 200
    assert r.json()["totalAmount"] == course.price
    assert client.get(url, headers=headers_for(other_student)).status_code == 403
    assert client.get(url, headers=admin_headers).status_code == 200
    assert client.get(url).status_code == 401
    assert client.get(f"{API}/orders/9999", headers=admin_headers).status_code == 404


def test_student_orders_lists_only_own(client, db, student, other_student, student_headers, course, paper):
    make_order(db, student, ("course", course))
    make_order(db, other_student, ("paper", paper))

    r = client.get(f"{API}/student/orders", headers=student_headers)
    assert r.status_code == 200
    assert r.json()["total"] == 1
    assert r.json()["orders"][0]["items"][0]["courseId"] == course.id


def test_checkout_status_is_scoped_to_user(client, db, student, other_student, student_headers, course):
    order = make_order(db, student, ("course", course))
    r = client.get(f"{API}/checkout/status/{order.id}", headers=student_headers)
    assert r.status_code == 200
    assert r.json()["paymentStatus"] == "PENDING"
    assert client.get(f"{API}/checkout/status/{order.id}", headers=headers_for(other_student)).status_code == 404


# -------------------- admin --------------------
def test_admin_lists_orders_with_filters(client, db, student, admin_headers, course, paper, student_headers):
    confirmed = make_order(db, student, ("course", course))
    make_order(db, student, ("paper", paper))
    svc.transition_payment(db, confirmed, PS.CONFIRMED)
    db.commit()

    r = client.get(f"{API}/admin/orders", params={"status": "COMPLETED"}, headers=admin_headers)
    assert r.status_code == 200
    assert [o["id"] for o in r.json()["orders"]] == [confirmed.id]
    assert client.get(f"{API}/admin/orders", headers=student_headers).status_code == 403


def test_admin_completes_order(client, db, student, admin_headers, course):
    order = make_order(db, student, ("course", course))
    r = client.patch(f"{API}/admin/orders/{order.id}/status", json={"status": "COMPLETED"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "COMPLETED"
    assert r.json()["paymentStatus"] == "CONFIRMED"
    assert db.query(CourseEnrollment).filter_by(user_id=student.id, course_id=course.id).count() == 1


def test_admin_toggles_processing_while_open(client, db, student, admin_headers, course):
    order = make_order(db, student, ("course", course))
    url = f"{API}/admin/orders/{order.id}/status"

    r = client.patch(url, json={"status": "PROCESSING"}, headers=admin_headers)
    assert r.json()["status"] == "PROCESSING"
    assert r.json()["paymentStatus"] == "PROCESSING"

    r = client.patch(url, json={"status": "PENDING"}, headers=admin_headers)
    assert r.json()["status"] == "PENDING"


def test_admin_cannot_reopen_completed_order(client, db, student, admin_headers, course):
    order = make_order(db, student, ("course", course))
    url = f"{API}/admin/orders/{order.id}/status"
    client.patch(url, json={"paymentStatus": "CONFIRMED"}, headers=admin_headers)

    r = client.patch(url, json={"status": "PENDING"}, headers=admin_headers)
    assert r.status_code == 400
    r = client.patch(url, json={"paymentStatus": "FAILED"}, headers=admin_headers)
    assert r.status_code == 400
    db.expire_all()
    assert order.status == OrderStatus.COMPLETED


def test_admin_status_requires_a_field(client, db, student, admin_headers, course):
    order = make_order(db, student, ("course", course))
    r = client.patch(f"{API}/admin/orders/{order.id}/status", json={}, headers=admin_headers)
    assert r.status_code == 400


def test_refund_calls_gateway_when_charged(client, db, gateway, student, admin_headers, course):
    order = make_order(db, student, ("course", course))
    order.charge_id = "pay_77"
    svc.transition_payment(db, order, PS.CONFIRMED)
    db.commit()

    r = client.post(f"{API}/admin/orders/{order.id}/refund", json={"description": "Desistência"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["paymentStatus"] == "REFUNDED"
    assert r.json()["status"] == "CANCELED"
    assert gateway.calls == ["refund_payment"]


def test_refund_of_pending_order_fails(client, db, student, admin_headers, course):
    order = make_order(db, student, ("course", course))
    r = client.post(f"{API}/admin/orders/{order.id}/refund", headers=admin_headers)
    assert r.status_code == 400
    db.expire_all()
    assert order.payment_status == PS.PENDING
