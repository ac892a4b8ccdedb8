from conftest import API
from lnedu.core.security import create_refresh_token


def register(client, email="ana.paula@gmail.com", password="segredo123"):
    return client.post(f"{API}/auth/register", json={"name": "Ana Paula", "email": email, "password": password})


def test_register_and_me(client):
    r = register(client, email="Ana.Paula@Gmail.com")
    assert r.status_code == 201
    body = r.json()
    assert body["user"]["email"] == "ana.paula@gmail.com"
    assert body["user"]["role"] == "STUDENT"
    assert body["token_type"] == "bearer"

    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == body["user"]["id"]


def test_duplicate_email(client):
    register(client)
    r = register(client)
    assert r.status_code == 400
    assert r.json()["detail"] == "E-mail já cadastrado"


def test_short_password(client):
    assert register(client, password="123").status_code == 400


def test_login(client):
    register(client)
    ok = client.post(f"{API}/auth/login", json={"email": "ana.paula@gmail.com", "password": "segredo123"})
    assert ok.status_code == 200
    assert ok.json()["access_token"]

    bad = client.post(f"{API}/auth/login", json={"email": "ana.paula@gmail.com", "password": "errada"})
    assert bad.status_code == 401


def test_refresh(client):
    tokens = register(client).json()
    r = client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 200
    assert r.json()["access_token"]

    # access token não serve como refresh
    assert client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["access_token"]}).status_code == 401
    assert client.post(f"{API}/auth/refresh", json={}).status_code == 401


def test_refresh_for_deleted_user(client):
    token = create_refresh_token(sub="4242")
    assert client.post(f"{API}/auth/refresh", json={"refresh_token": token}).status_code == 401


def test_me_requires_token(client):
    assert client.get(f"{API}/auth/me").status_code == 401
    bad = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer nao-e-um-jwt"})
    assert bad.status_code == 401


def test_health(client):
    assert client.get(f"{API}/health").json() == {"status": "ok"}
