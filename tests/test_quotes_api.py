"""Server-side quote storage and credit consumption."""
from conftest import register
from devispro.db import get_session
from devispro.models import User
from devispro.repositories import UserRepository

SERVICES = [
    {"description": "Pose", "quantity": 2, "price": 50, "tvaRate": 20},
    {"description": "Déplacement", "quantity": 1, "price": 10, "tvaRate": 0},
]


def _set_user(user_id, **fields):
    with get_session() as s:
        user = s.get(User, user_id)
        for k, v in fields.items():
            setattr(user, k, v)
        s.add(user)
        s.commit()


def _submit(client, headers, **extra):
    body = {"client_name": "Mme Martin", "services": SERVICES, **extra}
    return client.post("/api/quotes", json=body, headers=headers)


def test_submit_recomputes_totals_and_consumes_one_credit(client, auth):
    headers, _ = auth
    res = _submit(client, headers, totals={"ht": 1, "tva": 1, "ttc": 1})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["credits_remaining"] == 2
    assert body["quote"]["totals"] == {"ht": 110, "tva": 20, "ttc": 130}
    assert body["quote"]["quote_number"].startswith("DEV-")
    assert body["quote"]["status"] == "draft"
    assert body["quote"]["services"][0]["total"] == 120


def test_missing_client_name(client, auth):
    headers, _ = auth
    res = client.post("/api/quotes", json={"services": SERVICES}, headers=headers)
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_quota_boundary_for_free_tier(client, auth):
    headers, user = auth
    _set_user(user["id"], credits=1)

    ok = _submit(client, headers)
    assert ok.status_code == 200
    assert ok.json()["credits_remaining"] == 0

    refused = _submit(client, headers)
    assert refused.status_code == 402
    assert refused.json()["success"] is False

    with get_session() as s:
        assert s.get(User, user["id"]).credits == 0
    assert len(client.get("/api/quotes", headers=headers).json()["quotes"]) == 1


def test_pro_tier_submits_indefinitely(client, auth):
    headers, user = auth
    _set_user(user["id"], subscription_tier="pro", unlimited_credits=True, credits=0)
    for _ in range(5):
        res = _submit(client, headers)
        assert res.status_code == 200
        assert res.json()["credits_remaining"] is None


def test_conditional_decrement_refuses_at_zero(client, auth):
    _, user = auth
    _set_user(user["id"], credits=1)
    with get_session() as s:
        users = UserRepository(s)
        assert users.consume_credit(user["id"]) is True
        assert users.consume_credit(user["id"]) is False
        s.commit()
    with get_session() as s:
        assert s.get(User, user["id"]).credits == 0


def test_duplicate_client_number_is_refused_without_consuming_credit(client, auth):
    headers, user = auth
    assert _submit(client, headers, quote_number="DEV-2026-001").status_code == 200
    res = _submit(client, headers, quote_number="DEV-2026-001")
    assert res.status_code == 400
    with get_session() as s:
        assert s.get(User, user["id"]).credits == 2


def test_list_get_and_status(client, auth):
    headers, _ = auth
    first = _submit(client, headers).json()["quote"]
    second = _submit(client, headers, client_name="M. Durand").json()["quote"]

    listed = client.get("/api/quotes", headers=headers).json()["quotes"]
    assert [q["id"] for q in listed] == [second["id"], first["id"]]

    got = client.get(f"/api/quotes/{first['id']}", headers=headers)
    assert got.json()["quote"]["client_name"] == "Mme Martin"

    res = client.patch(f"/api/quotes/{first['id']}/status", json={"status": "sent"}, headers=headers)
    assert res.json()["quote"]["status"] == "sent"
    bad = client.patch(f"/api/quotes/{first['id']}/status", json={"status": "archived"}, headers=headers)
    assert bad.status_code == 400


def test_quotes_of_other_users_are_hidden(client, auth):
    headers, _ = auth
    quote_id = _submit(client, headers).json()["quote"]["id"]

    other = register(client, email="c@d.com").json()["token"]
    other_headers = {"Authorization": f"Bearer {other}"}
    assert client.get(f"/api/quotes/{quote_id}", headers=other_headers).status_code == 404
    assert client.get(f"/api/quotes/{quote_id}/pdf", headers=other_headers).status_code == 404


def test_download_pdf(client, auth):
    headers, _ = auth
    quote = _submit(client, headers, quote_number="DEV-2026-042", notes="Valable 30 jours").json()["quote"]
    res = client.get(f"/api/quotes/{quote['id']}/pdf", headers=headers)
    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    assert 'filename="devis-DEV-2026-042.pdf"' in res.headers["content-disposition"]
    assert res.content.startswith(b"%PDF")


def test_requires_authentication(client):
    assert client.post("/api/quotes", json={"client_name": "x"}).status_code == 401


def test_services_without_ids_get_distinct_ids(client, auth):
    headers, _ = auth
    services = [{"description": f"Ligne {n}", "quantity": 1, "price": 10} for n in range(3)]
    res = _submit(client, headers, services=services)
    assert res.status_code == 200, res.text
    ids = [s["id"] for s in res.json()["quote"]["services"]]
    assert len(set(ids)) == 3

    pdf = client.get(f"/api/quotes/{res.json()['quote']['id']}/pdf", headers=headers)
    assert pdf.status_code == 200
