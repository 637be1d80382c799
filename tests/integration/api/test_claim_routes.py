"""
Integration tests for claim and admin API routes.

Drives the FastAPI app with httpx.AsyncClient against the test
database and an in-process ledger.

Usage:
    laborant monnayeur --integration
"""

from datetime import timedelta
from decimal import Decimal

import httpx
import pytest_asyncio

from monnayeur.config.settings import Settings
from monnayeur.di.container import DIContainer, override_container
from monnayeur.domain.exceptions import (
    ChainUnavailableError,
    SubmissionRejectedError,
)
from monnayeur.domain.services.clock import SystemClock
from monnayeur.domain.value_objects.wallet_address import WalletAddress
from monnayeur.infrastructure.persistence.repositories.claim_store import ClaimStore
from monnayeur.main import create_app
from tests.helpers import LaborantTest, make_address

ADMIN_KEY = "test-admin-key"
ADMIN = {"X-Admin-Key": ADMIN_KEY}


def make_settings(database_url: str) -> Settings:
    return Settings(
        _env_file=None,
        ENV="test",
        DATABASE_URL=database_url,
        CHAIN_RPC_URL="http://localhost:8545",
        TOKEN_CONTRACT_ADDRESS=make_address(0xBEEF),
        ADMIN_API_KEY=ADMIN_KEY,
        REFERRAL_ENABLED=False,
        SYNC_ON_STARTUP=False,
        SCHEDULER_ENABLED=False,
        CLAIM_RESPONSE_TIMEOUT=5,
        LOG_JSON=False,
        LOG_LEVEL="WARNING",
    )


@pytest_asyncio.fixture
async def container(database, ledger):
    container = DIContainer(make_settings(database.database_url))
    container._database = database
    container._ledger_gateway = ledger
    container._claim_store = ClaimStore(database)
    override_container(container)

    yield container

    await container.orchestrator.drain(timeout=1)
    override_container(None)


@pytest_asyncio.fixture
async def client(container):
    app = create_app(container.settings)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestClaimRoutes(LaborantTest):
    """Integration tests for claim API routes."""

    component_name = "monnayeur"
    test_category = "integration"

    # ================================================================
    # Claim submission tests
    # ================================================================

    async def test_claim_confirmed(self, client, ledger):
        """Test successful claim returns 200 with transaction."""
        self.reporter.info("Testing POST /api/claims", context="Test")

        address = make_address(1)
        response = await client.post("/api/claims", json={"wallet_address": address})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "confirmed"
        assert data["address"] == address
        assert data["transaction_id"].startswith("0x")
        assert data["explorer_url"].endswith(data["transaction_id"])
        assert ledger.mints_to(address) == 1
        self.reporter.info("Claim confirmed via API", context="Test")

    async def test_repeat_claim_is_idempotent(self, client, ledger):
        """Test repeated claim returns the stored transaction."""
        address = make_address(2)
        first = await client.post("/api/claims", json={"wallet_address": address})
        second = await client.post("/api/claims", json={"wallet_address": address})

        assert second.status_code == 200
        assert second.json()["idempotent"] is True
        assert second.json()["transaction_id"] == first.json()["transaction_id"]
        assert ledger.mints_to(address) == 1

    async def test_claim_invalid_address(self, client):
        """Test malformed address returns 400."""
        response = await client.post("/api/claims", json={"wallet_address": "0x1234"})

        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_address"

    async def test_claim_amount_fixed_by_server(self, client, ledger):
        """Test a caller-supplied amount cannot change the minted quantity."""
        self.reporter.info("Testing server-side mint amount", context="Test")

        address = make_address(3)
        response = await client.post(
            "/api/claims",
            json={"wallet_address": address, "amount": "1000000000"},
        )

        assert response.status_code == 200
        assert ledger.mint_calls == [(address, Decimal("2"))]

    async def test_claim_chain_unavailable_is_accepted(self, client, ledger):
        """Test claim during an outage returns 202 pending."""
        self.reporter.info("Testing claim during outage", context="Test")

        ledger.mint_error = ChainUnavailableError("rpc down", "mint")

        response = await client.post(
            "/api/claims", json={"wallet_address": make_address(4)}
        )

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "pending"
        assert data["reason"] == "chain_unavailable"
        assert "rpc down" not in data["message"]

    async def test_claim_in_flight_conflict(self, client, container):
        """Test claim while another is in flight returns 409."""
        wallet = WalletAddress.parse(make_address(5))
        now = SystemClock().now()
        await container.claim_store.begin_claim(
            wallet, Decimal("2"), now=now, stale_before=now - timedelta(minutes=10)
        )

        response = await client.post(
            "/api/claims", json={"wallet_address": wallet.address}
        )

        assert response.status_code == 409
        assert response.json()["reason"] == "in_flight"

    # ================================================================
    # Status tests
    # ================================================================

    async def test_claim_status(self, client):
        """Test status lookup returns stored record."""
        self.reporter.info("Testing GET /api/claims/{wallet}", context="Test")

        address = make_address(6)
        claim = await client.post("/api/claims", json={"wallet_address": address})

        response = await client.get(f"/api/claims/{address}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "confirmed"
        assert data["transaction_id"] == claim.json()["transaction_id"]
        assert Decimal(data["mint_amount"]) == Decimal("2")

    async def test_claim_status_unknown_wallet(self, client):
        """Test status of unknown wallet returns 404."""
        response = await client.get(f"/api/claims/{make_address(7)}")

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    async def test_claim_status_invalid_address(self, client):
        """Test status with malformed address returns 400."""
        response = await client.get("/api/claims/not-a-wallet")

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_ADDRESS"

    # ================================================================
    # Registration tests
    # ================================================================

    async def test_register_wallet(self, client, ledger):
        """Test registration stores an unclaimed record without minting."""
        self.reporter.info("Testing POST /api/claims/register", context="Test")

        address = make_address(8)
        response = await client.post(
            "/api/claims/register", json={"wallet_address": address}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["address"] == address
        assert data["status"] == "unclaimed"
        assert Decimal(data["mint_amount"]) == Decimal("2")
        assert data["referrer_address"] is None
        assert ledger.write_count == 0

    async def test_register_records_first_referrer(self, client, container):
        """Test the first referrer is kept across repeated registrations."""
        address = make_address(9)
        referrer = make_address(10)

        first = await client.post(
            "/api/claims/register",
            json={
                "wallet_address": address,
                "referrer_address": referrer,
                "referral_code": "FRIEND",
            },
        )
        second = await client.post(
            "/api/claims/register",
            json={"wallet_address": address, "referrer_address": make_address(11)},
        )

        assert first.json()["referrer_address"] == referrer
        assert second.status_code == 201
        assert second.json()["referrer_address"] == referrer

        record = await container.claim_store.get(WalletAddress.parse(address))
        assert record.referrer_code == "FRIEND"

    async def test_register_self_referral_ignored(self, client):
        """Test a wallet cannot refer itself."""
        address = make_address(12)
        response = await client.post(
            "/api/claims/register",
            json={"wallet_address": address, "referrer_address": address},
        )

        assert response.status_code == 201
        assert response.json()["referrer_address"] is None

    async def test_register_invalid_referrer(self, client):
        """Test malformed referrer returns 400 and registers nothing."""
        address = make_address(13)
        response = await client.post(
            "/api/claims/register",
            json={"wallet_address": address, "referrer_address": "0xnope"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_ADDRESS"
        assert (await client.get(f"/api/claims/{address}")).status_code == 404

    async def test_registered_wallet_minted_by_batch(self, client, ledger):
        """Test a registered wallet is picked up by the next batch run."""
        address = make_address(14)
        await client.post("/api/claims/register", json={"wallet_address": address})

        response = await client.post("/api/admin/batch", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["minted"] == 1
        status = await client.get(f"/api/claims/{address}")
        assert status.json()["status"] == "confirmed"


class TestAdminRoutes(LaborantTest):
    """Integration tests for admin API routes."""

    component_name = "monnayeur"
    test_category = "integration"

    # ================================================================
    # Authentication tests
    # ================================================================

    async def test_missing_admin_key(self, client):
        """Test admin routes require the key."""
        response = await client.post("/api/admin/sweep")

        assert response.status_code == 401

    async def test_wrong_admin_key(self, client):
        """Test wrong key is refused."""
        response = await client.post("/api/admin/sweep", headers={"X-Admin-Key": "nope"})

        assert response.status_code == 401

    # ================================================================
    # Operation tests
    # ================================================================

    async def test_sweep(self, client):
        """Test manual sweep returns counts."""
        self.reporter.info("Testing POST /api/admin/sweep", context="Test")

        response = await client.post("/api/admin/sweep", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["total"] == 0

    async def test_batch_run(self, client, container, ledger):
        """Test manual batch run mints registered wallets."""
        self.reporter.info("Testing POST /api/admin/batch", context="Test")

        for n in (10, 11):
            await container.claim_store.register(
                WalletAddress.parse(make_address(n)), Decimal("2")
            )

        response = await client.post("/api/admin/batch", headers=ADMIN)

        assert response.status_code == 200
        data = response.json()
        assert data["minted"] == 2
        assert len(data["transaction_ids"]) == 1
        assert len(ledger.batch_calls) == 1

    async def test_retry_claim_not_failed(self, client):
        """Test retrying a confirmed claim returns 409."""
        address = make_address(12)
        await client.post("/api/claims", json={"wallet_address": address})

        response = await client.post(f"/api/admin/claims/{address}/retry", headers=ADMIN)

        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_STATE"

    async def test_retry_failed_claims(self, client, ledger):
        """Test bulk retry recovers a rejected claim."""
        address = make_address(13)
        ledger.mint_error = SubmissionRejectedError("reverted")
        rejected = await client.post("/api/claims", json={"wallet_address": address})
        assert rejected.status_code == 502
        ledger.mint_error = None

        response = await client.post("/api/admin/claims/retry-failed", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["confirmed"] == 1

    async def test_stats(self, client, container):
        """Test stats count claims per status."""
        await container.claim_store.register(
            WalletAddress.parse(make_address(14)), Decimal("2")
        )
        await client.post("/api/claims", json={"wallet_address": make_address(15)})

        response = await client.get("/api/admin/stats", headers=ADMIN)

        assert response.status_code == 200
        data = response.json()
        assert data["counts"]["unclaimed"] == 1
        assert data["counts"]["confirmed"] == 1
        assert data["total"] == 2

    # ================================================================
    # Health tests
    # ================================================================

    async def test_health(self, client):
        """Test health reports database and ledger state."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["database"]["status"] == "healthy"
        assert data["components"]["ledger"]["state"] == "closed"
