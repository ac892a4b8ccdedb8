import pytest

from conftest import API, headers_for
from lnedu.services.blog import reading_time, slugify

ARTICLE = {
    "title": "Como escrever um TCC: guia prático",
    "content": "<p>Escolha o tema, delimite o problema e monte o cronograma.</p>",
    "excerpt": "Passo a passo para o seu trabalho de conclusão.",
    "tags": ["tcc", "metodologia"],
}


def create_post(client, headers, **overrides):
    r = client.post(f"{API}/admin/blog", json={**ARTICLE, **overrides}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def published(client, admin_headers):
    return create_post(client, admin_headers, published=True)


def test_slug_and_reading_time():
    assert slugify("Como escrever um TCC: guia prático") == "como-escrever-um-tcc-guia-pratico"
    assert slugify("  Normas   ABNT -- 2024 ") == "normas-abnt-2024"
    assert reading_time("<p>curto</p>") == 1
    assert reading_time(" ".join(["palavra"] * 451)) == 3


def test_draft_is_hidden_until_published(client, admin_headers):
    post = create_post(client, admin_headers)
    assert post["published"] is False
    assert post["status"] == "DRAFT"
    assert post["slug"] == "como-escrever-um-tcc-guia-pratico"

    assert client.get(f"{API}/blog").json()["total"] == 0
    assert client.get(f"{API}/blog/{post['slug']}").status_code == 404

    r = client.patch(f"{API}/admin/blog/{post['id']}/publish", headers=admin_headers)
    assert r.json()["published"] is True
    assert r.json()["status"] == "PUBLISHED"
    assert r.json()["publishedAt"] is not None

    assert client.get(f"{API}/blog").json()["total"] == 1
    body = client.get(f"{API}/blog/{post['slug']}").json()
    assert body["views"] == 1
    assert "Escolha o tema" in body["content"]

    r = client.patch(f"{API}/admin/blog/{post['id']}/publish", headers=admin_headers)
    assert r.json()["published"] is False
    assert r.json()["publishedAt"] is None
    assert client.get(f"{API}/blog/{post['slug']}").status_code == 404


def test_duplicate_titles_get_distinct_slugs(client, admin_headers):
    first = create_post(client, admin_headers)
    second = create_post(client, admin_headers)
    assert second["slug"] == f"{first['slug']}-2"


def test_update_recomputes_slug_and_reading_time(client, admin_headers, published):
    r = client.put(
        f"{API}/admin/blog/{published['id']}",
        json={"title": "Guia do TCC", "content": " ".join(["texto"] * 500)},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["slug"] == "guia-do-tcc"
    assert r.json()["readingTime"] == 3
    assert r.json()["published"] is True


def test_search_and_tag_filters(client, admin_headers, published):
    create_post(client, admin_headers, title="Citações diretas", content="Regras de citação", tags=["abnt"], published=True)

    r = client.get(f"{API}/blog", params={"tag": "abnt"})
    assert [p["title"] for p in r.json()["posts"]] == ["Citações diretas"]
    r = client.get(f"{API}/blog", params={"search": "cronograma"})
    assert [p["id"] for p in r.json()["posts"]] == [published["id"]]
    assert "content" not in r.json()["posts"][0]


def test_admin_routes_require_admin(client, student_headers, published):
    assert client.post(f"{API}/admin/blog", json=ARTICLE, headers=student_headers).status_code == 403
    assert client.get(f"{API}/admin/comments", headers=student_headers).status_code == 403
    assert client.get(f"{API}/admin/analytics/blog-overview").status_code == 401


def test_delete_post(client, admin_headers, published):
    assert client.delete(f"{API}/admin/blog/{published['id']}", headers=admin_headers).json() == {"success": True}
    assert client.get(f"{API}/admin/blog/{published['id']}", headers=admin_headers).status_code == 404


# -------------------- comentários --------------------
def test_comments_wait_for_moderation(client, admin_headers, student_headers, other_student, published):
    r = client.post(
        f"{API}/blog/comments",
        json={"postId": published["id"], "content": "Muito útil, obrigada!"},
        headers=student_headers,
    )
    assert r.status_code == 201
    comment = r.json()
    assert comment["approved"] is False
    assert client.get(f"{API}/blog/{published['id']}/comments").json() == {"comments": []}

    pending = client.get(f"{API}/admin/comments", params={"approved": False}, headers=admin_headers).json()
    assert pending["total"] == 1

    r = client.put(f"{API}/admin/comments/{comment['id']}/approve", headers=admin_headers)
    assert r.json()["approved"] is True

    reply = client.post(
        f"{API}/blog/comments",
        json={"postId": published["id"], "content": "Concordo!", "parentId": comment["id"]},
        headers=headers_for(other_student),
    ).json()
    client.put(f"{API}/admin/comments/{reply['id']}", json={"approved": True}, headers=admin_headers)

    thread = client.get(f"{API}/blog/{published['id']}/comments").json()["comments"]
    assert len(thread) == 1
    assert thread[0]["userName"] == "Maria Silva"
    assert [r["content"] for r in thread[0]["replies"]] == ["Concordo!"]

    # só um nível de resposta
    r = client.post(
        f"{API}/blog/comments",
        json={"postId": published["id"], "content": "E eu?", "parentId": reply["id"]},
        headers=student_headers,
    )
    assert r.status_code == 400

    assert client.get(f"{API}/blog/{published['slug']}").json()["comments"] == 2


def test_comment_rules(client, admin_headers, student_headers):
    draft = create_post(client, admin_headers)
    r = client.post(f"{API}/blog/comments", json={"postId": draft["id"], "content": "Oi"}, headers=student_headers)
    assert r.status_code == 404
    assert client.post(f"{API}/blog/comments", json={"postId": draft["id"], "content": "Oi"}).status_code == 401


def test_delete_comment_removes_replies(client, admin_headers, student_headers, published):
    parent = client.post(
        f"{API}/blog/comments", json={"postId": published["id"], "content": "Pergunta"}, headers=student_headers
    ).json()
    client.post(
        f"{API}/blog/comments",
        json={"postId": published["id"], "content": "Resposta", "parentId": parent["id"]},
        headers=admin_headers,
    )
    client.delete(f"{API}/admin/comments/{parent['id']}", headers=admin_headers)
    assert client.get(f"{API}/admin/comments", headers=admin_headers).json()["total"] == 0


# -------------------- curtidas / analytics --------------------
def test_like_toggles(client, student_headers, published):
    url = f"{API}/blog/{published['id']}"
    assert client.post(f"{url}/like", headers=student_headers).json() == {"liked": True, "count": 1}
    assert client.get(f"{url}/likes/status", headers=student_headers).json() == {"liked": True}
    assert client.post(f"{url}/like", headers=student_headers).json() == {"liked": False, "count": 0}
    assert client.get(f"{url}/likes/count").json() == {"count": 0}
    assert client.post(f"{url}/like").status_code == 401


def test_related_posts_share_a_tag(client, admin_headers, published):
    same = create_post(client, admin_headers, title="Cronograma do TCC", tags=["tcc"], published=True)
    create_post(client, admin_headers, title="Receitas de bolo", tags=["culinaria"], published=True)
    create_post(client, admin_headers, title="Rascunho sobre TCC", tags=["tcc"])

    r = client.get(f"{API}/blog/{published['id']}/related")
    assert [p["id"] for p in r.json()["posts"]] == [same["id"]]


def test_tracking_feeds_overview(client, admin_headers, student_headers, published):
    for _ in range(2):
        assert client.post(f"{API}/analytics/track-view", json={"postId": published["id"]}).json()["success"] is True
    r = client.post(f"{API}/analytics/track-share", json={"postId": published["id"], "platform": "whatsapp"})
    assert r.json() == {"success": True, "shares": 1}
    client.post(f"{API}/blog/{published['id']}/like", headers=student_headers)

    overview = client.get(f"{API}/admin/analytics/blog-overview", headers=admin_headers).json()
    assert overview["totalPosts"] == 1
    assert overview["publishedPosts"] == 1
    assert overview["totalViews"] == 2
    assert overview["periodViews"] == 2
    assert overview["periodShares"] == 1
    assert overview["totalLikes"] == 1
    assert overview["topPosts"][0]["id"] == published["id"]

    assert client.post(f"{API}/analytics/track-view", json={"postId": 999}).status_code == 404
