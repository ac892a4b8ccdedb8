import pytest

from conftest import API, headers_for, make_user
from lnedu.models.enums import UserRole
from lnedu.models.user import User
from lnedu.services.collaborators import round_half_up

APPLICATION = {
    "fullName": "Maria Silva",
    "email": "maria.silva@gmail.com",
    "phone": "11999998888",
    "area": "Educação",
    "experience": "5 anos orientando TCCs e revisando artigos científicos.",
    "availability": "20h semanais",
}


@pytest.fixture
def application_id(client, student_headers):
    r = client.post(f"{API}/collaborator/apply", json=APPLICATION, headers=student_headers)
    assert r.status_code == 201
    return r.json()["id"]


def evaluate(client, headers, application_id, scores, recommendation="HIRE"):
    exp, skills, edu, fit = scores
    return client.post(
        f"{API}/admin/collaborators/{application_id}/evaluate",
        json={
            "experienceScore": exp,
            "skillsScore": skills,
            "educationScore": edu,
            "culturalFitScore": fit,
            "recommendation": recommendation,
            "comments": "ok",
        },
        headers=headers,
    )


@pytest.mark.parametrize("value,expected", [(7.5, 8), (7.25, 7), (6.5, 7), (0.0, 0)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_apply_creates_pending_application(client, application_id, student_headers):
    r = client.get(f"{API}/collaborator/application", headers=student_headers)
    assert r.status_code == 200
    assert r.json()["id"] == application_id
    assert r.json()["status"] == "PENDING"
    assert r.json()["stage"] == "RECEIVED"


def test_second_application_is_rejected(client, application_id, student_headers):
    r = client.post(f"{API}/collaborator/apply", json=APPLICATION, headers=student_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Você já possui uma candidatura registrada"


def test_no_application_yet(client, student_headers):
    assert client.get(f"{API}/collaborator/application", headers=student_headers).status_code == 404


def test_approval_promotes_student(client, db, student, application_id, admin_headers):
    r = client.put(
        f"{API}/admin/collaborators/{application_id}/status",
        json={"status": "APPROVED"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "APPROVED"
    db.expire_all()
    assert db.get(User, student.id).role == UserRole.COLLABORATOR


def test_approval_keeps_admin_role(client, db, admin, admin_headers):
    r = client.post(f"{API}/collaborator/apply", json={**APPLICATION, "email": admin.email}, headers=admin_headers)
    client.put(f"{API}/admin/collaborators/{r.json()['id']}/status", json={"status": "APPROVED"}, headers=admin_headers)
    db.expire_all()
    assert db.get(User, admin.id).role == UserRole.ADMIN


def test_rejection_does_not_promote(client, db, student, application_id, admin_headers):
    client.put(f"{API}/admin/collaborators/{application_id}/status", json={"status": "REJECTED"}, headers=admin_headers)
    db.expire_all()
    assert db.get(User, student.id).role == UserRole.STUDENT


def test_stage_update(client, application_id, admin_headers):
    r = client.patch(
        f"{API}/admin/collaborators/{application_id}/stage",
        json={"stage": "INTERVIEW"},
        headers=admin_headers,
    )
    assert r.json()["stage"] == "INTERVIEW"


def test_evaluations_average_into_score(client, db, application_id, admin_headers):
    r = evaluate(client, admin_headers, application_id, (8, 7, 9, 6))
    assert r.status_code == 201
    assert r.json()["evaluation"]["totalScore"] == 8  # 7.5 arredonda para cima
    assert r.json()["applicationScore"] == 8

    other_admin = make_user(db, "coord@lneducacional.com.br", role=UserRole.ADMIN)
    r = evaluate(client, headers_for(other_admin), application_id, (5, 5, 5, 5), recommendation="MAYBE")
    assert r.json()["evaluation"]["totalScore"] == 5
    assert r.json()["applicationScore"] == 7  # (8 + 5) / 2 = 6.5


def test_evaluation_score_bounds(client, application_id, admin_headers):
    assert evaluate(client, admin_headers, application_id, (11, 5, 5, 5)).status_code == 400


def test_admin_list_and_search(client, application_id, admin_headers, student_headers):
    r = client.get(f"{API}/admin/collaborators", params={"search": "Educa"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["total"] == 1
    assert r.json()["applications"][0]["id"] == application_id

    r = client.get(f"{API}/admin/collaborators", params={"status": "APPROVED"}, headers=admin_headers)
    assert r.json()["total"] == 0
    assert client.get(f"{API}/admin/collaborators", headers=student_headers).status_code == 403
