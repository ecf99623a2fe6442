from conftest import expense_payload


def _create(client, trip_id="trip-1", **kwargs):
    resp = client.post(f"/api/trips/{trip_id}/expenses", json=expense_payload(**kwargs))
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_create_and_get_expense(client):
    expense = _create(client)

    resp = client.get(f"/api/trips/trip-1/expenses/{expense['id']}")

    assert resp.status_code == 200
    assert resp.json() == expense
    assert expense["paidBy"] == "alice"
    assert resp.headers["X-Request-ID"]


def test_create_rejects_mismatched_split(client):
    payload = expense_payload(amount=100, shares={"alice": 40, "bob": 40})

    resp = client.post("/api/trips/trip-1/expenses", json=payload)

    assert resp.status_code == 422


def test_create_rejects_non_positive_amount(client):
    resp = client.post("/api/trips/trip-1/expenses", json=expense_payload(amount=0, shares={"alice": 0}))

    assert resp.status_code == 422


def test_get_expense_from_another_trip_is_404(client):
    expense = _create(client, trip_id="trip-1")

    assert client.get(f"/api/trips/trip-2/expenses/{expense['id']}").status_code == 404
    assert client.get("/api/trips/trip-1/expenses/missing").status_code == 404


def test_list_expenses_newest_first_with_totals(client):
    _create(client, date="2026-03-01", amount=30, shares={"alice": 15, "bob": 15})
    _create(client, date="2026-03-03", amount=60, shares={"alice": 60}, category="transport")
    _create(client, date="2026-03-02", amount=10, shares={"bob": 10})
    _create(client, trip_id="trip-2")

    body = client.get("/api/trips/trip-1/expenses").json()

    assert [e["date"] for e in body["expenses"]] == ["2026-03-03", "2026-03-02", "2026-03-01"]
    assert body["totals"] == {"total": 100.0, "byCategory": {"transport": 60.0, "food": 40.0}}
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 3, "totalPages": 1}


def test_list_expenses_category_and_pagination(client):
    for day in range(1, 6):
        _create(client, date=f"2026-03-0{day}")
    _create(client, category="shopping")

    body = client.get("/api/trips/trip-1/expenses", params={"category": "food", "page": 2, "limit": 2}).json()

    assert [e["date"] for e in body["expenses"]] == ["2026-03-03", "2026-03-02"]
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "totalPages": 3}


def test_list_expenses_rejects_bad_pagination(client):
    assert client.get("/api/trips/trip-1/expenses", params={"page": 0}).status_code == 422
    assert client.get("/api/trips/trip-1/expenses", params={"limit": 101}).status_code == 422
    assert client.get("/api/trips/trip-1/expenses", params={"category": "souvenirs"}).status_code == 422


def test_partial_update_is_revalidated(client):
    expense = _create(client)
    url = f"/api/trips/trip-1/expenses/{expense['id']}"

    resp = client.put(url, json={"title": "Late dinner"})
    assert resp.status_code == 200
    assert resp.json()["title"] == "Late dinner"
    assert resp.json()["amount"] == 90.0

    # Changing the amount alone would leave the shares short
    assert client.put(url, json={"amount": 120}).status_code == 422

    resp = client.put(url, json={
        "amount": 120,
        "splitBetween": [{"participantId": "alice", "amount": 60}, {"participantId": "bob", "amount": 60}],
    })
    assert resp.status_code == 200
    assert [s["participantId"] for s in resp.json()["splitBetween"]] == ["alice", "bob"]


def test_update_missing_expense(client):
    assert client.put("/api/trips/trip-1/expenses/missing", json={"title": "x"}).status_code == 404


def test_delete_expense(client):
    expense = _create(client)
    url = f"/api/trips/trip-1/expenses/{expense['id']}"

    assert client.delete("/api/trips/trip-2/expenses/" + expense["id"]).status_code == 404
    assert client.delete(url).status_code == 204
    assert client.get(url).status_code == 404
    assert client.delete(url).status_code == 404


def test_settle_share(client):
    expense = _create(client)
    url = f"/api/trips/trip-1/expenses/{expense['id']}/settle"

    resp = client.post(url, json={"participantId": "bob"})

    assert resp.status_code == 200
    assert [s["settled"] for s in resp.json()["splitBetween"]] == [False, True, False]
    assert client.post(url, json={"participantId": "dave"}).status_code == 400
    assert client.post("/api/trips/trip-1/expenses/missing/settle", json={"participantId": "bob"}).status_code == 404


def test_settlements_endpoint(client):
    _create(client, paid_by="A", amount=90, shares={"A": 30, "B": 30, "C": 30})
    _create(client, paid_by="B", amount=30, shares={"A": 10, "B": 10, "C": 10})

    resp = client.get("/api/trips/trip-1/expenses/settlements")

    assert resp.status_code == 200
    body = resp.json()
    assert body["currency"] == "USD"
    assert body["strategy"] == "greedy"
    assert list(body["balances"].items()) == [("A", 50.0), ("B", -10.0), ("C", -40.0)]
    assert body["settlements"] == [
        {"from": "B", "to": "A", "amount": 10.0},
        {"from": "C", "to": "A", "amount": 40.0},
    ]
    assert body["unsettled"] == {}


def test_settlements_ignore_settled_flags(client):
    expense = _create(client, paid_by="A", amount=100, shares={"A": 50, "B": 50})
    before = client.get("/api/trips/trip-1/expenses/settlements").json()

    client.post(f"/api/trips/trip-1/expenses/{expense['id']}/settle", json={"participantId": "B"})

    assert client.get("/api/trips/trip-1/expenses/settlements").json() == before
    assert before["settlements"] == [{"from": "B", "to": "A", "amount": 50.0}]


def test_settlements_normalize_currencies(client):
    _create(client, paid_by="A", amount=100, shares={"A": 50, "B": 50}, currency="USD")
    _create(client, paid_by="B", amount=92, shares={"B": 46, "C": 46}, currency="EUR")

    body = client.get("/api/trips/trip-1/expenses/settlements", params={"currency": "EUR"}).json()

    assert body["currency"] == "EUR"
    assert body["balances"] == {"A": 46.0, "B": 0.0, "C": -46.0}
    assert body["settlements"] == [{"from": "C", "to": "A", "amount": 46.0}]


def test_settlements_min_transactions_strategy(client):
    _create(client, paid_by="A", amount=5, shares={"D": 5})
    _create(client, paid_by="B", amount=10, shares={"C": 10})

    greedy = client.get("/api/trips/trip-1/expenses/settlements").json()
    optimal = client.get(
        "/api/trips/trip-1/expenses/settlements", params={"strategy": "min_transactions"}
    ).json()

    assert greedy["settlements"] == [
        {"from": "D", "to": "A", "amount": 5.0},
        {"from": "C", "to": "B", "amount": 10.0},
    ]
    assert optimal["strategy"] == "min_transactions"
    assert len(optimal["settlements"]) == 2


def test_settlements_bad_query(client):
    url = "/api/trips/trip-1/expenses/settlements"

    assert client.get(url, params={"strategy": "optimal"}).status_code == 400
    assert client.get(url, params={"currency": "XYZ"}).status_code == 400


def test_settlements_for_empty_trip(client):
    body = client.get("/api/trips/empty/expenses/settlements").json()

    assert body["balances"] == {}
    assert body["settlements"] == []


def test_summary(client):
    _create(client, paid_by="alice", date="2026-03-01", amount=90)
    _create(client, paid_by="bob", date="2026-03-01", amount=30, shares={"alice": 15, "bob": 15}, category="transport")
    _create(client, paid_by="alice", date="2026-03-02", amount=92, shares={"alice": 92}, currency="EUR")

    body = client.get("/api/trips/trip-1/expenses/summary").json()

    assert body["totalExpenses"] == 3
    assert body["totalAmount"] == 220.0
    assert body["byCategory"] == {
        "food": {"count": 2, "amount": 190.0},
        "transport": {"count": 1, "amount": 30.0},
    }
    assert body["byPayer"] == {
        "alice": {"count": 2, "amount": 190.0},
        "bob": {"count": 1, "amount": 30.0},
    }
    assert body["dailyAverage"] == 110.0


def test_summary_empty_trip(client):
    body = client.get("/api/trips/empty/expenses/summary").json()

    assert body["totalExpenses"] == 0
    assert body["totalAmount"] == 0.0
    assert body["dailyAverage"] == 0.0


def test_corrupt_stored_expense_is_reported(client, memory_repo):
    expense = _create(client)
    memory_repo._expenses[expense["id"]]["amount"] = -5

    resp = client.get("/api/trips/trip-1/expenses/settlements")

    assert resp.status_code == 422
    assert "amount must be positive" in resp.json()["detail"]


def test_list_expenses_date_range(client):
    for day in range(1, 6):
        _create(client, date=f"2026-03-0{day}")

    url = "/api/trips/trip-1/expenses"
    body = client.get(url, params={"start": "2026-03-02", "end": "2026-03-04"}).json()

    assert [e["date"] for e in body["expenses"]] == ["2026-03-04", "2026-03-03", "2026-03-02"]
    assert body["totals"]["total"] == 270.0
    assert [e["date"] for e in client.get(url, params={"start": "2026-03-05"}).json()["expenses"]] == ["2026-03-05"]
    assert client.get(url, params={"end": "2026-02-28"}).json()["expenses"] == []


def test_list_expenses_rejects_bad_date_range(client):
    url = "/api/trips/trip-1/expenses"

    assert client.get(url, params={"start": "2026-03-05", "end": "2026-03-01"}).status_code == 400
    assert client.get(url, params={"start": "March"}).status_code == 422


def test_create_rejects_amount_beyond_storage_precision(client):
    payload = expense_payload(amount="12.00001", shares={"alice": "12.00001"})

    assert client.post("/api/trips/trip-1/expenses", json=payload).status_code == 422
