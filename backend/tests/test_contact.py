from conftest import API
from lnedu.models.message import Message
from lnedu.models.outbox import EmailOutbox

CONTACT = {
    "name": "Maria Silva",
    "email": "maria.silva@gmail.com",
    "phone": "11999998888",
    "subject": "Dúvida sobre matrícula",
    "message": "Olá, gostaria de saber como funciona a matrícula no curso.",
    "category": "cursos",
    "acceptTerms": True,
}


def send(client, headers=None, **overrides):
    return client.post(f"{API}/contact", json={**CONTACT, **overrides}, headers=headers or {})


def test_clean_message_is_stored(client, db):
    r = send(client)
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True

    msg = db.get(Message, body["messageId"])
    assert msg.meta["ip"] == "testclient"
    assert msg.meta["userAgent"] == "testclient"
    assert msg.meta["spamScore"] == 0.0
    assert msg.priority.value == "NORMAL"

    # aviso para a equipe + resposta automática
    recipients = sorted(row.to_addr for row in db.query(EmailOutbox))
    assert recipients == ["contato@lneducacional.com.br", "maria.silva@gmail.com"]


def test_notification_escapes_html(client, db):
    r = send(client, name="Maria <b>Silva</b>", message="Olá <img src=x onerror=alert(1)> gostaria de saber mais.")
    assert r.status_code == 201

    team = db.query(EmailOutbox).filter_by(to_addr="contato@lneducacional.com.br").one()
    assert "<img" not in team.html
    assert "Olá &lt;img src=x onerror=alert(1)&gt; gostaria de saber mais." in team.html
    assert "Maria &lt;b&gt;Silva&lt;/b&gt;" in team.html

    # o texto original fica salvo sem alteração
    assert db.get(Message, r.json()["messageId"]).message.startswith("Olá <img")


def test_urgent_subject_gets_high_priority(client, db):
    r = send(client, subject="Reclamação urgente sobre acesso")
    assert db.get(Message, r.json()["messageId"]).priority.value == "HIGH"


def test_honeypot_is_blocked(client, db):
    r = send(client, website="http://spam.example")
    assert r.status_code == 429
    assert r.json()["retryAfter"] == 3600
    assert db.query(Message).count() == 0


def test_spam_keywords_are_blocked(client, db):
    r = send(client, message="buy now act now limited time")
    assert r.status_code == 429
    assert r.json()["retryAfter"] == 3600
    assert db.query(Message).count() == 0


def test_falsy_honeypot_is_blocked(client, db):
    assert send(client, website=0).status_code == 429
    assert send(client, website=False).status_code == 429
    assert db.query(Message).count() == 0


def test_disposable_email_requires_captcha(client, db):
    r = send(client, email="maria@mailinator.com")
    assert r.status_code == 400
    assert r.json()["requiresCaptcha"] is True
    assert db.query(Message).count() == 0


def test_rate_limit_per_ip(client, db):
    for _ in range(5):
        assert send(client).status_code == 201
    assert send(client).status_code == 429

    # outro IP pelo proxy segue liberado
    r = send(client, headers={"X-Forwarded-For": "198.51.100.1, 10.0.0.1"})
    assert r.status_code == 201
    assert db.get(Message, r.json()["messageId"]).meta["ip"] == "198.51.100.1"


def test_invalid_payload(client):
    r = send(client, acceptTerms=False)
    assert r.status_code == 400
    assert r.json()["detail"] == "Dados inválidos"
    assert send(client, message="curta").status_code == 400


# -------------------- admin --------------------
def test_admin_reply_and_stats(client, db, admin, admin_headers):
    first = send(client).json()["messageId"]
    send(client, subject="Outra dúvida", message="Vocês emitem nota fiscal para empresas?")

    r = client.post(
        f"{API}/admin/messages/{first}/reply",
        json={"content": "Olá Maria, a matrícula é feita pelo site."},
        headers=admin_headers,
    )
    assert r.status_code == 200
    msg = r.json()["message"]
    assert msg["replied"] is True
    assert msg["status"] == "READ"
    assert msg["assignedTo"] == admin.id
    assert msg["repliedAt"] is not None
    assert db.query(EmailOutbox).filter(EmailOutbox.subject == "Re: Dúvida sobre matrícula").count() == 1

    stats = client.get(f"{API}/admin/messages/stats", headers=admin_headers).json()
    assert stats["total"] == 2
    assert stats["unread"] == 1
    assert stats["read"] == 1
    assert stats["replied"] == 1
    assert stats["byPriority"]["NORMAL"] == 2


def test_admin_list_bulk_read_and_delete(client, admin_headers, student_headers):
    ids = [send(client, subject=f"Assunto {i}").json()["messageId"] for i in range(3)]

    r = client.get(f"{API}/admin/messages", params={"status": "UNREAD"}, headers=admin_headers)
    assert r.json()["total"] == 3
    r = client.get(f"{API}/admin/messages", params={"search": "Assunto 1"}, headers=admin_headers)
    assert [m["id"] for m in r.json()["messages"]] == [ids[1]]

    r = client.patch(f"{API}/admin/messages/bulk-read", json={"messageIds": ids[:2]}, headers=admin_headers)
    assert r.json() == {"success": True, "updated": 2}

    r = client.put(f"{API}/admin/messages/{ids[2]}/status", json={"status": "ARCHIVED"}, headers=admin_headers)
    assert r.json()["status"] == "ARCHIVED"

    assert client.delete(f"{API}/admin/messages/{ids[0]}", headers=admin_headers).json() == {"success": True}
    r = client.put(f"{API}/admin/messages/{ids[0]}/status", json={"status": "READ"}, headers=admin_headers)
    assert r.status_code == 404

    assert client.get(f"{API}/admin/messages", headers=student_headers).status_code == 403


def test_admin_manages_blacklist(client, admin_headers):
    r = client.post(f"{API}/admin/spam/blacklist", json={"ip": "testclient"}, headers=admin_headers)
    assert r.status_code == 201
    assert send(client).status_code == 429

    assert client.get(f"{API}/admin/spam/blacklist", headers=admin_headers).json() == {"blacklist": ["testclient"]}
    stats = client.get(f"{API}/admin/spam/stats", headers=admin_headers).json()
    assert stats["totalBlacklisted"] == 1

    client.delete(f"{API}/admin/spam/blacklist/testclient", headers=admin_headers)
    assert send(client).status_code == 201
