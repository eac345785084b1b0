"""
Tests for the transactions API.
"""

import io
import uuid

import pandas as pd
import pytest

BASE = "/api/transactions"


async def _add(client, **overrides):
    body = {"amount": 10.0, "category": "Food", "type": "expense"}
    body.update(overrides)
    response = await client.post(BASE, json=body)
    assert response.status_code == 201, response.text
    return response.json()["transaction"]


async def _switch_to_bob(client):
    client.cookies.clear()
    response = await client.post(
        "/auth/register",
        json={"username": "bob", "email": "b@x.com", "password": "hunter22"},
    )
    assert response.status_code == 201


class TestCreateAndList:
    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        assert (await client.get(BASE)).status_code == 401
        response = await client.post(BASE, json={"amount": 1, "category": "x", "type": "income"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_defaults(self, client, registered_user):
        txn = await _add(client, description="lunch")
        assert txn["status"] == "completed"
        assert txn["amount"] == 10.0
        assert txn["description"] == "lunch"
        assert txn["date"]

    @pytest.mark.asyncio
    async def test_invalid_type_rejected(self, client, registered_user):
        response = await client.post(BASE, json={"amount": 5, "category": "x", "type": "gift"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, client, registered_user):
        response = await client.post(BASE, json={"amount": 0, "category": "x", "type": "income"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_pagination_and_total(self, client, registered_user):
        for day in range(1, 6):
            await _add(client, amount=day, date=f"2024-01-0{day}T12:00:00")

        response = await client.get(BASE, params={"page": 2, "limit": 2})
        body = response.json()
        assert body["total"] == 5
        # newest first by default: 5, 4 | 3, 2 | 1
        assert [t["amount"] for t in body["data"]] == [3.0, 2.0]

    @pytest.mark.asyncio
    async def test_sort_and_filters(self, client, registered_user):
        await _add(client, amount=50, category="Salary", type="income", date="2024-02-01T00:00:00")
        await _add(client, amount=20, category="Food", description="Groceries", date="2024-02-10T00:00:00")
        await _add(client, amount=5, category="Transport", status="pending", date="2024-03-01T00:00:00")

        by_amount = await client.get(BASE, params={"sortBy": "amount", "order": "asc"})
        assert [t["amount"] for t in by_amount.json()["data"]] == [5.0, 20.0, 50.0]

        incomes = await client.get(BASE, params={"type": "income"})
        assert [t["category"] for t in incomes.json()["data"]] == ["Salary"]

        pending = await client.get(BASE, params={"status": "pending"})
        assert pending.json()["total"] == 1

        february = await client.get(BASE, params={"startDate": "2024-02-01", "endDate": "2024-02-10"})
        assert february.json()["total"] == 2

        searched = await client.get(BASE, params={"search": "grocer"})
        assert [t["category"] for t in searched.json()["data"]] == ["Food"]

    @pytest.mark.asyncio
    async def test_reversed_date_range(self, client, registered_user):
        response = await client.get(BASE, params={"startDate": "2024-03-01", "endDate": "2024-02-01"})
        assert response.status_code == 400


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update(self, client, registered_user):
        txn = await _add(client)
        response = await client.put(f"{BASE}/{txn['transaction_id']}", json={"amount": 12.5, "status": "failed"})
        assert response.status_code == 200
        updated = response.json()["transaction"]
        assert updated["amount"] == 12.5
        assert updated["status"] == "failed"
        assert updated["category"] == "Food"

    @pytest.mark.asyncio
    async def test_update_without_fields(self, client, registered_user):
        txn = await _add(client)
        response = await client.put(f"{BASE}/{txn['transaction_id']}", json={})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete(self, client, registered_user):
        txn = await _add(client)
        response = await client.delete(f"{BASE}/{txn['transaction_id']}")
        assert response.status_code == 200
        assert (await client.get(f"{BASE}/{txn['transaction_id']}")).status_code == 404
        assert (await client.delete(f"{BASE}/{txn['transaction_id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_id(self, client, registered_user):
        response = await client.put(f"{BASE}/{uuid.uuid4()}", json={"amount": 1})
        assert response.status_code == 404


class TestOwnership:
    @pytest.mark.asyncio
    async def test_other_users_rows_are_invisible(self, client, registered_user):
        txn = await _add(client, amount=99)
        await _switch_to_bob(client)

        assert (await client.get(BASE)).json() == {"data": [], "total": 0}
        assert (await client.get(f"{BASE}/{txn['transaction_id']}")).status_code == 404
        assert (await client.put(f"{BASE}/{txn['transaction_id']}", json={"amount": 1})).status_code == 404
        assert (await client.delete(f"{BASE}/{txn['transaction_id']}")).status_code == 404
        assert (await client.get(f"{BASE}/summary")).json()["balance"] == 0.0

        client.cookies.clear()
        await client.post("/auth/login", json={"email": "a@x.com", "password": "secret123"})
        mine = await client.get(f"{BASE}/{txn['transaction_id']}")
        assert mine.json()["transaction"]["amount"] == 99.0


class TestAggregations:
    @pytest.mark.asyncio
    async def test_summary(self, client, registered_user):
        await _add(client, amount=1000, category="Salary", type="income")
        await _add(client, amount=120.5, category="Food")
        await _add(client, amount=79.5, category="Rent")

        body = (await client.get(f"{BASE}/summary")).json()
        assert body["income"] == 1000.0
        assert body["expense"] == 200.0
        assert body["balance"] == 800.0
        assert body["summary"] == [
            {"type": "expense", "total": 200.0},
            {"type": "income", "total": 1000.0},
        ]

    @pytest.mark.asyncio
    async def test_summary_empty(self, client, registered_user):
        body = (await client.get(f"{BASE}/summary")).json()
        assert body == {"summary": [], "income": 0.0, "expense": 0.0, "balance": 0.0}

    @pytest.mark.asyncio
    async def test_breakdown(self, client, registered_user):
        await _add(client, amount=30, category="Food")
        await _add(client, amount=15, category="Food")
        await _add(client, amount=100, category="Rent")
        await _add(client, amount=500, category="Salary", type="income")

        everything = (await client.get(f"{BASE}/breakdown")).json()["breakdown"]
        assert everything == [
            {"category": "Salary", "total": 500.0},
            {"category": "Rent", "total": 100.0},
            {"category": "Food", "total": 45.0},
        ]

        expenses = (await client.get(f"{BASE}/breakdown", params={"type": "expense"})).json()["breakdown"]
        assert [row["category"] for row in expenses] == ["Rent", "Food"]


class TestExport:
    @pytest.mark.asyncio
    async def test_csv_export(self, client, registered_user):
        await _add(client, amount=30, category="Food", date="2024-01-02T00:00:00")
        await _add(client, amount=500, category="Salary", type="income", date="2024-01-01T00:00:00")

        response = await client.get(f"{BASE}/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="transactions.csv"' in response.headers["content-disposition"]

        frame = pd.read_csv(io.StringIO(response.text))
        assert list(frame.columns) == ["date", "type", "category", "amount", "status", "description"]
        assert list(frame["category"]) == ["Salary", "Food"]

    @pytest.mark.asyncio
    async def test_json_export_with_filter(self, client, registered_user):
        await _add(client, amount=30, category="Food")
        await _add(client, amount=500, category="Salary", type="income")

        response = await client.get(f"{BASE}/export", params={"format": "json", "type": "income"})
        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["category"] == "Salary"
        assert rows[0]["amount"] == 500.0
