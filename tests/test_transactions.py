"""
Tests for POST /accounts/{id}/transactions.

These tests verify:
  - Credits increase and debits decrease the balance
  - Debits past the credit limit are refused (422) and leave no trace
  - Validation failures return 422 and never touch storage
  - Unknown accounts return 404
  - Concurrent requests on one account never spend past the limit
  - Storage failures map to 503 (transient) and 500 (internal)
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.database import BIGINT_MAX
from app.dependencies import get_transaction_processor
from app.exceptions import InternalStorageError, TransientStorageError
from app.main import app
from app.services.transaction_service import TransactionProcessor
from app.store import AccountStore


class TestCredit:
    """Tests for credit ("c") transactions."""

    async def test_credit_increases_balance(self, client, read_account):
        response = await client.post(
            "/accounts/1/transactions",
            json={"value": 100, "kind": "c", "description": "deposito"},
        )
        assert response.status_code == 200
        assert response.json() == {"balance": 100, "creditLimit": 1000}
        assert (await read_account(1)).balance == 100

    async def test_credits_accumulate(self, client):
        await client.post(
            "/accounts/2/transactions",
            json={"value": 5000, "kind": "c", "description": "a"},
        )
        response = await client.post(
            "/accounts/2/transactions",
            json={"value": 3000, "kind": "c", "description": "b"},
        )
        assert response.json()["balance"] == 8000


class TestDebit:
    """Tests for debit ("d") transactions and the credit limit."""

    async def test_debit_can_go_negative_within_limit(self, client):
        response = await client.post(
            "/accounts/1/transactions",
            json={"value": 500, "kind": "d", "description": "compra"},
        )
        assert response.status_code == 200
        assert response.json() == {"balance": -500, "creditLimit": 1000}

    async def test_debit_past_limit_refused(self, client, read_account, count_transactions):
        await client.post(
            "/accounts/1/transactions",
            json={"value": 500, "kind": "d", "description": "compra"},
        )

        response = await client.post(
            "/accounts/1/transactions",
            json={"value": 600, "kind": "d", "description": "compra2"},
        )
        assert response.status_code == 422
        body = response.json()
        assert body["error_type"] == "limit_exceeded"
        assert body["balance"] == -500
        assert body["creditLimit"] == 1000

        assert (await read_account(1)).balance == -500
        assert await count_transactions(1) == 1

    async def test_boundary(self, client, read_account):
        """Debit to exactly -limit succeeds; one more unit fails."""
        response = await client.post(
            "/accounts/1/transactions",
            json={"value": 1000, "kind": "d", "description": "limite"},
        )
        assert response.status_code == 200
        assert response.json()["balance"] == -1000

        response = await client.post(
            "/accounts/1/transactions",
            json={"value": 1, "kind": "d", "description": "um"},
        )
        assert response.status_code == 422
        assert (await read_account(1)).balance == -1000

    async def test_large_values(self, client):
        """Balances are stored as BIGINT and survive values past 32 bits."""
        response = await client.post(
            "/accounts/2/transactions",
            json={"value": 5_000_000_000, "kind": "c", "description": "big"},
        )
        assert response.status_code == 200
        assert response.json()["balance"] == 5_000_000_000


class TestValidation:
    """Malformed requests are rejected with 422 and write nothing."""

    @pytest.mark.parametrize(
        "body",
        [
            {"value": 100, "kind": "c", "description": ""},
            {"value": 100, "kind": "c", "description": "12345678901"},
            {"value": 0, "kind": "c", "description": "zero"},
            {"value": -100, "kind": "d", "description": "neg"},
        ],
    )
    async def test_out_of_range_fields(self, client, body, count_transactions):
        response = await client.post("/accounts/1/transactions", json=body)

        assert response.status_code == 422
        assert response.json()["error_type"] == "invalid_request"
        assert await count_transactions(1) == 0

    @pytest.mark.parametrize(
        "body",
        [
            {"value": 100, "kind": "x", "description": "bad kind"},
            {"value": 100, "kind": "credit", "description": "bad kind"},
            {"value": 1.5, "kind": "c", "description": "float"},
            {"value": "100", "kind": "c", "description": "string"},
            {"value": 100, "kind": "c", "description": None},
            {"value": 100, "kind": "c"},
            {"kind": "c", "description": "no value"},
        ],
    )
    async def test_malformed_body(self, client, body, count_transactions):
        response = await client.post("/accounts/1/transactions", json=body)

        assert response.status_code == 422
        assert await count_transactions(1) == 0

    async def test_value_beyond_bigint_rejected(self, client, count_transactions):
        response = await client.post(
            "/accounts/2/transactions",
            json={"value": BIGINT_MAX + 1, "kind": "c", "description": "huge"},
        )

        assert response.status_code == 422
        assert response.json()["error_type"] == "invalid_request"
        assert response.json()["field"] == "value"
        assert await count_transactions(2) == 0

    async def test_balance_overflow_rejected(self, client, read_account, count_transactions):
        response = await client.post(
            "/accounts/2/transactions",
            json={"value": BIGINT_MAX, "kind": "c", "description": "max"},
        )
        assert response.status_code == 200

        response = await client.post(
            "/accounts/2/transactions",
            json={"value": 1, "kind": "c", "description": "one more"},
        )

        assert response.status_code == 422
        assert response.json()["error_type"] == "invalid_request"
        assert (await read_account(2)).balance == BIGINT_MAX
        assert await count_transactions(2) == 1

    async def test_invalid_request_on_unknown_account_is_422(self, client):
        """Validation runs before the account lookup."""
        response = await client.post(
            "/accounts/999/transactions",
            json={"value": 0, "kind": "c", "description": "x"},
        )
        assert response.status_code == 422


class TestUnknownAccount:

    async def test_unknown_account_returns_404(self, client):
        response = await client.post(
            "/accounts/999/transactions",
            json={"value": 100, "kind": "c", "description": "deposito"},
        )
        assert response.status_code == 404
        assert response.json()["error_type"] == "account_not_found"


class TestConcurrentTransactions:
    """Concurrent requests are serialised per account by the row lock."""

    async def test_concurrent_debits_same_account(self, client, read_account):
        """Ten 150 debits against a 1000 limit: exactly six fit."""
        results = await asyncio.gather(*(
            client.post(
                "/accounts/1/transactions",
                json={"value": 150, "kind": "d", "description": f"d{i}"},
            )
            for i in range(10)
        ))

        status_codes = [r.status_code for r in results]
        assert status_codes.count(200) == 6
        assert status_codes.count(422) == 4
        assert (await read_account(1)).balance == -900

    async def test_concurrent_operations_on_different_accounts(self, client, read_account):
        results = await asyncio.gather(
            client.post(
                "/accounts/1/transactions",
                json={"value": 1000, "kind": "d", "description": "a"},
            ),
            client.post(
                "/accounts/2/transactions",
                json={"value": 7000, "kind": "c", "description": "b"},
            ),
        )

        assert [r.status_code for r in results] == [200, 200]
        assert (await read_account(1)).balance == -1000
        assert (await read_account(2)).balance == 7000


class TestHealth:

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestStorageErrors:
    """Storage failures surface as 503 / 500 with a typed body."""

    @pytest.fixture
    def failing_store(self):
        return AsyncMock(spec=AccountStore)

    @pytest_asyncio.fixture
    async def failing_client(self, failing_store):
        processor = TransactionProcessor(failing_store)
        app.dependency_overrides[get_transaction_processor] = lambda: processor

        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac

        app.dependency_overrides.clear()

    @pytest.mark.parametrize(
        "error, status_code, error_type",
        [
            (TransientStorageError(), 503, "storage_unavailable"),
            (InternalStorageError(), 500, "internal_error"),
        ],
    )
    async def test_transaction_storage_error(
        self, failing_client, failing_store, error, status_code, error_type
    ):
        failing_store.apply_delta.side_effect = error

        response = await failing_client.post(
            "/accounts/1/transactions",
            json={"value": 100, "kind": "c", "description": "deposito"},
        )

        assert response.status_code == status_code
        assert response.json()["error_type"] == error_type

    @pytest.mark.parametrize(
        "error, status_code, error_type",
        [
            (TransientStorageError(), 503, "storage_unavailable"),
            (InternalStorageError(), 500, "internal_error"),
        ],
    )
    async def test_statement_storage_error(
        self, failing_client, failing_store, error, status_code, error_type
    ):
        failing_store.read_snapshot.side_effect = error

        response = await failing_client.get("/accounts/1/statement")

        assert response.status_code == status_code
        assert response.json()["error_type"] == error_type
        failing_store.read_recent_log.assert_not_called()
