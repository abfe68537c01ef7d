"""
Integration tests for the HTTP endpoints.
"""
import base64

import pytest

from shopguide.receipt import proxy

MODEL_ANSWER = (
    '{"store_name": "Mercado X", "total_paid": 10.5,'
    ' "line_items": [{"name": "Bread", "unit_price": 10.5, "quantity": 1, "line_total": 10.5}]}'
)


@pytest.fixture()
def extractor(monkeypatch, make_extractor):
    fake = make_extractor(MODEL_ANSWER)
    monkeypatch.setattr(proxy, "get_receipt_extractor", lambda: fake)
    return fake


class TestSession:
    def test_me_anonymous(self, client):
        resp = client.get("/api/me")
        assert resp.status_code == 200
        assert resp.json() is None

    def test_login_then_me(self, client):
        resp = client.post("/api/session", json={"name": " Ana ", "email": ""})
        assert resp.status_code == 200
        assert resp.json()["name"] == "Ana"
        assert resp.json()["email"] is None

        me = client.get("/api/me").json()
        assert me["id"] == resp.json()["id"]

    def test_blank_name(self, client):
        assert client.post("/api/session", json={"name": "  "}).status_code == 400

    @pytest.mark.parametrize("method, path", [
        ("get", "/api/dashboard"),
        ("get", "/api/receipts"),
        ("get", "/api/history"),
        ("get", "/api/bills"),
        ("post", "/api/receipts/scan"),
    ])
    def test_login_required(self, client, method, path):
        resp = getattr(client, method)(path, json={}) if method == "post" else client.get(path)
        assert resp.status_code == 401


class TestScan:
    def test_scan_flow(self, logged_in, extractor):
        resp = logged_in.post("/api/receipts/scan", json={"document": "data:image/png;base64,aGVsbG8="})
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["receipt"]["store_name"] == "Mercado X"
        assert body["receipt"]["line_items"][0]["name"] == "Bread"
        assert extractor.calls == [("aGVsbG8=", "image/png")]

        listed = logged_in.get("/api/receipts", params={"period": "today"}).json()
        assert [r["store_name"] for r in listed] == ["Mercado X"]

        dashboard = logged_in.get("/api/dashboard", params={"period": "7days"}).json()
        assert dashboard["total_spent"] == 10.5

    def test_scan_without_document(self, logged_in, extractor):
        resp = logged_in.post("/api/receipts/scan", json={})
        assert resp.status_code == 400
        assert extractor.calls == []

    def test_scan_unreadable_answer(self, logged_in, extractor):
        extractor.text = "I cannot read this."
        resp = logged_in.post("/api/receipts/scan", json={"document": "aGVsbG8="})
        assert resp.status_code == 502
        assert logged_in.get("/api/receipts").json() == []

    def test_scan_unconfigured(self, logged_in, monkeypatch):
        monkeypatch.setenv("RECEIPT_PROVIDER", "nope")
        resp = logged_in.post("/api/receipts/scan", json={"document": "aGVsbG8="})
        assert resp.status_code == 503

    def test_upload_pdf(self, logged_in, extractor):
        resp = logged_in.post(
            "/api/receipts/upload",
            files={"file": ("receipt.pdf", b"%PDF-1.4 test", "application/pdf")},
        )
        assert resp.status_code == 201
        payload = base64.b64encode(b"%PDF-1.4 test").decode()
        assert extractor.calls == [(payload, "application/pdf")]

    def test_upload_rejects_other_types(self, logged_in, extractor):
        resp = logged_in.post("/api/receipts/upload", files={"file": ("a.txt", b"hi", "text/plain")})
        assert resp.status_code == 400

    def test_get_and_delete(self, logged_in, extractor):
        rid = logged_in.post("/api/receipts/scan", json={"document": "aGVsbG8="}).json()["receipt"]["id"]
        assert logged_in.get(f"/api/receipts/{rid}").status_code == 200
        assert logged_in.delete(f"/api/receipts/{rid}").status_code == 204
        assert logged_in.get(f"/api/receipts/{rid}").status_code == 404


class TestSpending:
    def test_bad_period(self, logged_in):
        assert logged_in.get("/api/dashboard", params={"period": "decade"}).status_code == 400
        assert logged_in.get("/api/dashboard", params={"tz": "Nowhere/City"}).status_code == 400

    def test_rename_and_products(self, logged_in, extractor):
        logged_in.post("/api/receipts/scan", json={"document": "aGVsbG8="})
        resp = logged_in.post("/api/stores/rename", json={"old_name": "Mercado X", "new_name": "Mercado Y"})
        assert resp.json() == {"receipts": 1, "bills": 0}

        store = logged_in.get("/api/stores/Mercado Y").json()
        assert store["total_spent"] == 10.5

        products = logged_in.get("/api/products", params={"store": "Mercado Y"}).json()
        assert [p["name"] for p in products["products"]] == ["Bread"]
        assert logged_in.get("/api/products", params={"sort": "random"}).status_code == 400

        product = logged_in.get("/api/products/bread").json()
        assert product["total_quantity"] == 1.0

    def test_rename_requires_name(self, logged_in):
        resp = logged_in.post("/api/stores/rename", json={"old_name": "A", "new_name": " "})
        assert resp.status_code == 400


class TestBills:
    def _create(self, client, **overrides):
        data = {"supplier_name": "Power Co", "amount": "120.50", "due_date": "2000-01-10"}
        data.update(overrides)
        return client.post("/api/bills", json=data)

    def test_create_list_and_pay(self, logged_in):
        created = self._create(logged_in)
        assert created.status_code == 201
        bill = created.json()
        assert bill["status"] == "overdue"
        assert bill["stored_status"] == "open"
        assert bill["category_name"] == "Uncategorized"

        listing = logged_in.get("/api/bills", params={"status": "overdue"}).json()
        assert [b["id"] for b in listing["bills"]] == [bill["id"]]
        assert listing["summary"]["overdue"] == 1

        paid = logged_in.post(f"/api/bills/{bill['id']}/pay").json()
        assert paid["status"] == "paid"
        assert paid["payment_date"] is not None

        history = logged_in.get("/api/history", params={"period": "today"}).json()
        assert [i["kind"] for i in history["items"]] == ["bill"]

    def test_create_paid_now(self, logged_in):
        bill = self._create(logged_in, pay_now=True).json()
        assert bill["status"] == "paid"

    @pytest.mark.parametrize("overrides", [
        {"supplier_name": " "},
        {"amount": "0"},
        {"due_date": None},
    ])
    def test_validation(self, logged_in, overrides):
        assert self._create(logged_in, **overrides).status_code == 400

    def test_update_and_delete(self, logged_in):
        bill = self._create(logged_in).json()
        resp = logged_in.put(
            f"/api/bills/{bill['id']}",
            json={"supplier_name": "Power Company", "amount": "99", "due_date": "2999-01-01", "category_name": "Home"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "open"
        assert logged_in.get("/api/bills/suppliers").json() == ["Power Company"]
        assert logged_in.get("/api/bills/categories").json() == ["Home"]

        assert logged_in.delete(f"/api/bills/{bill['id']}").status_code == 204
        assert logged_in.get("/api/bills").json()["bills"] == []

    def test_unknown_status_filter(self, logged_in):
        assert logged_in.get("/api/bills", params={"status": "late"}).status_code == 400


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
