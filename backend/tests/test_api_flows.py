"""End-to-end API flows for a signed-in user."""

import pytest


class TestProfileApi:
    """Test /api/users/profile."""

    @pytest.mark.asyncio
    async def test_get_profile(self, client, user_headers):
        response = await client.get("/api/users/profile", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "user@example.com"

    @pytest.mark.asyncio
    async def test_update_profile(self, client, user_headers):
        response = await client.put("/api/users/profile", headers=user_headers, json={
            "name": " Renamed ",
            "usdt_wallet": "TQn9Y2khEsLJW1ChVWFMSMeRDow5KcbLSE",
        })
        assert response.status_code == 200
        data = response.json()["user"]
        assert data["name"] == "Renamed"
        assert data["usdt_wallet"] == "TQn9Y2khEsLJW1ChVWFMSMeRDow5KcbLSE"

    @pytest.mark.asyncio
    async def test_balance_and_role_not_editable(self, client, user_headers):
        response = await client.put("/api/users/profile", headers=user_headers, json={
            "balance": 1000000,
            "role": "admin",
        })
        assert response.status_code == 200
        data = response.json()["user"]
        assert data["balance"] == 0
        assert data["role"] == "user"


class TestInvestmentApi:
    """Test /api/investments."""

    @pytest.mark.asyncio
    async def test_plans_are_public_to_users(self, client, user_headers):
        response = await client.get("/api/investments/plans", headers=user_headers)
        assert response.status_code == 200
        names = [plan["name"] for plan in response.json()]
        assert names == ["Starter Plan", "Growth Plan", "Premium Plan", "Elite Plan"]

    @pytest.mark.asyncio
    async def test_invest_and_replay(self, client, user, user_headers, fund):
        await fund(user.id, "1000.00")
        headers = {**user_headers, "Idempotency-Key": "order-1"}
        body = {"plan_id": "starter", "amount": "500.00"}

        first = await client.post("/api/investments", headers=headers, json=body)
        assert first.status_code == 201
        created = first.json()
        assert created["balance"] == 500.0
        assert created["replayed"] is False
        assert created["investment"]["roi_amount"] == 25.0
        assert created["investment"]["status"] == "active"

        second = await client.post("/api/investments", headers=headers, json=body)
        assert second.status_code == 200
        assert second.json()["replayed"] is True
        assert second.json()["investment"]["id"] == created["investment"]["id"]

        listing = await client.get("/api/investments", headers=user_headers)
        assert len(listing.json()) == 1

        single = await client.get(f"/api/investments/{created['investment']['id']}", headers=user_headers)
        assert single.status_code == 200

    @pytest.mark.asyncio
    async def test_amount_outside_plan_bounds(self, client, user, user_headers, fund):
        await fund(user.id, "5000.00")
        response = await client.post("/api/investments", headers=user_headers, json={
            "plan_id": "starter", "amount": "1500.00",
        })
        assert response.status_code == 400
        assert "Invalid investment amount" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, client, user_headers):
        response = await client.post("/api/investments", headers=user_headers, json={
            "plan_id": "starter", "amount": "100.00",
        })
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_plan(self, client, user_headers):
        response = await client.post("/api/investments", headers=user_headers, json={
            "plan_id": "moonshot", "amount": "100.00",
        })
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_non_positive_amount_is_rejected(self, client, user_headers):
        response = await client.post("/api/investments", headers=user_headers, json={
            "plan_id": "starter", "amount": "-5",
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_investments_disabled(self, client, user, user_headers, fund, admin_headers):
        await fund(user.id, "1000.00")
        toggle = await client.post("/api/admin/platform-status", headers=admin_headers, json={
            "investmentsEnabled": False,
        })
        assert toggle.status_code == 200

        response = await client.post("/api/investments", headers=user_headers, json={
            "plan_id": "starter", "amount": "100.00",
        })
        assert response.status_code == 403

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["limit=-1", "limit=0", "limit=201", "offset=-5"])
    async def test_listing_paging_is_bounded(self, client, user_headers, query):
        response = await client.get(f"/api/investments?{query}", headers=user_headers)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_other_users_investment_is_hidden(self, client, user, user_headers, fund, account_factory, tokens):
        await fund(user.id, "1000.00")
        created = await client.post("/api/investments", headers=user_headers, json={
            "plan_id": "starter", "amount": "100.00",
        })
        investment_id = created.json()["investment"]["id"]

        other = await account_factory("other@example.com")
        other_headers = {"Authorization": f"Bearer {tokens.issue(other.id)}"}
        response = await client.get(f"/api/investments/{investment_id}", headers=other_headers)
        assert response.status_code == 404


class TestDepositFlow:
    """Request a deposit, confirm it as admin, see the balance."""

    @pytest.mark.asyncio
    async def test_request_and_confirm(self, client, user_headers, admin_headers):
        requested = await client.post("/api/deposits/request", headers=user_headers, json={
            "amount": "250.00", "currency": "USDT", "transaction_hash": "0xabc",
        })
        assert requested.status_code == 201
        deposit = requested.json()["deposit"]
        assert deposit["status"] == "pending"
        # Defaults to the platform address for the currency
        assert deposit["wallet_address"] == "TYJUrp7L3K5YKEf9e7C3qsP4h1A9vXWz7R"

        pending = await client.get("/api/admin/deposits/pending", headers=admin_headers)
        assert [d["id"] for d in pending.json()] == [deposit["id"]]
        assert pending.json()[0]["user_email"] == "user@example.com"

        confirmed = await client.post(f"/api/admin/deposits/{deposit['id']}/confirm", headers=admin_headers)
        assert confirmed.status_code == 200
        assert confirmed.json()["balance"] == 250.0
        assert confirmed.json()["deposit"]["status"] == "confirmed"

        again = await client.post(f"/api/admin/deposits/{deposit['id']}/confirm", headers=admin_headers)
        assert again.status_code == 409

        history = await client.get("/api/transactions", headers=user_headers)
        entries = history.json()
        assert len(entries) == 1
        assert entries[0]["type"] == "deposit"
        assert entries[0]["balance_after"] == 250.0

        mine = await client.get("/api/deposits", headers=user_headers)
        assert mine.json()[0]["status"] == "confirmed"

    @pytest.mark.asyncio
    async def test_reject(self, client, user_headers, admin_headers):
        requested = await client.post("/api/deposits/request", headers=user_headers, json={
            "amount": "50.00", "currency": "BTC",
        })
        deposit_id = requested.json()["deposit"]["id"]

        rejected = await client.post(
            f"/api/admin/deposits/{deposit_id}/reject",
            headers=admin_headers,
            json={"notes": "No matching transfer"},
        )
        assert rejected.status_code == 200
        assert rejected.json()["deposit"]["status"] == "rejected"

        history = await client.get("/api/transactions", headers=user_headers)
        assert history.json() == []

    @pytest.mark.asyncio
    async def test_unsupported_currency(self, client, user_headers):
        response = await client.post("/api/deposits/request", headers=user_headers, json={
            "amount": "50.00", "currency": "DOGE",
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_confirm_unknown_deposit(self, client, admin_headers):
        response = await client.post("/api/admin/deposits/missing/confirm", headers=admin_headers)
        assert response.status_code == 404


class TestWithdrawalFlow:
    """Request, approve, complete and reject withdrawals."""

    @pytest.mark.asyncio
    async def test_approve_and_complete(self, client, user, user_headers, admin_headers, fund):
        await fund(user.id, "300.00")
        requested = await client.post("/api/withdrawals/request", headers=user_headers, json={
            "amount": "120.00", "currency": "BTC", "wallet_address": "bc1qpayout",
        })
        assert requested.status_code == 201
        withdrawal_id = requested.json()["withdrawal"]["id"]

        approved = await client.post(f"/api/admin/withdrawals/{withdrawal_id}/approve", headers=admin_headers)
        assert approved.status_code == 200
        assert approved.json()["balance"] == 180.0

        completed = await client.post(f"/api/admin/withdrawals/{withdrawal_id}/complete", headers=admin_headers)
        assert completed.status_code == 200
        assert completed.json()["withdrawal"]["status"] == "completed"

        rejected = await client.post(f"/api/admin/withdrawals/{withdrawal_id}/reject", headers=admin_headers)
        assert rejected.status_code == 409

        mine = await client.get("/api/withdrawals", headers=user_headers)
        assert mine.json()[0]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_below_minimum(self, client, user, user_headers, fund):
        await fund(user.id, "300.00")
        response = await client.post("/api/withdrawals/request", headers=user_headers, json={
            "amount": "5.00", "currency": "BTC", "wallet_address": "bc1qpayout",
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Minimum withdrawal amount is $10.00"

    @pytest.mark.asyncio
    async def test_more_than_balance(self, client, user_headers):
        response = await client.post("/api/withdrawals/request", headers=user_headers, json={
            "amount": "50.00", "currency": "USDT", "wallet_address": "TQn9Y2khEsLJW1ChVWFMSMeRDow5KcbLSE",
        })
        assert response.status_code == 400


class TestTransactionsApi:
    """Test /api/transactions paging and filters."""

    @pytest.mark.asyncio
    async def test_limit_is_capped(self, client, user_headers):
        response = await client.get("/api/transactions?limit=500", headers=user_headers)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_filter_by_kind(self, client, user, user_headers, fund):
        await fund(user.id, "1000.00")
        await client.post("/api/investments", headers=user_headers, json={
            "plan_id": "starter", "amount": "200.00",
        })

        everything = await client.get("/api/transactions", headers=user_headers)
        assert [e["type"] for e in everything.json()] == ["investment", "deposit"]

        investments = await client.get("/api/transactions?kind=investment", headers=user_headers)
        assert len(investments.json()) == 1
        assert investments.json()[0]["amount"] == -200.0

    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.get("/api/transactions")
        assert response.status_code == 401


class TestPlatformSettingsApi:

    @pytest.mark.asyncio
    async def test_public_settings(self, client, user_headers):
        response = await client.get("/api/platform/settings", headers=user_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["min_withdrawal_amount"] == "10.00"
        assert data["deposits_enabled"] == "true"
