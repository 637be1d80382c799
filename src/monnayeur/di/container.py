"""
Dependency Injection Container for Monnayeur.

Manages all service instances and their dependencies.
"""

from datetime import timedelta
from typing import List, Optional

from monnayeur.application.services.batch_mint_scheduler import BatchMintScheduler
from monnayeur.application.services.bonus_side_effector import (
    BonusPolicy,
    BonusSideEffector,
    BonusType,
)
from monnayeur.application.services.claim_orchestrator import ClaimOrchestrator
from monnayeur.application.services.reconciliation_sweeper import (
    ReconciliationSweeper,
)
from monnayeur.config.settings import Settings, get_settings
from monnayeur.domain.repositories.i_claim_store import IClaimStore
from monnayeur.domain.repositories.i_referral_bonus_repository import (
    IReferralBonusRepository,
)
from monnayeur.domain.services.clock import IClock, SystemClock
from monnayeur.domain.services.i_ledger_gateway import ILedgerGateway
from monnayeur.domain.value_objects.wallet_address import WalletAddress
from monnayeur.infrastructure.blockchain.circuit_breaker import CircuitBreaker
from monnayeur.infrastructure.blockchain.web3_ledger_gateway import (
    Web3LedgerGateway,
)
from monnayeur.infrastructure.monitoring.logger import get_logger
from monnayeur.infrastructure.persistence.database import Database
from monnayeur.infrastructure.persistence.repositories.claim_store import ClaimStore
from monnayeur.infrastructure.persistence.repositories.referral_bonus_repository import (  # noqa: E501
    ReferralBonusRepository,
)
from monnayeur.infrastructure.scheduling.periodic_task import PeriodicTask

logger = get_logger(__name__)

# Seconds shutdown waits for detached mints before closing connections
_DRAIN_TIMEOUT = 30.0


class DIContainer:
    """
    Dependency Injection Container.

    Manages singleton instances of all services and repositories.
    Any instance may be preset before first access (tests inject fakes
    through the underscore attributes).
    """

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize container with None instances."""
        self._settings = settings

        # Infrastructure
        self._database: Optional[Database] = None
        self._circuit_breaker: Optional[CircuitBreaker] = None
        self._ledger_gateway: Optional[ILedgerGateway] = None
        self._clock: Optional[IClock] = None

        # Repositories
        self._claim_store: Optional[IClaimStore] = None
        self._referral_bonus_repository: Optional[IReferralBonusRepository] = None

        # Application services
        self._bonus_side_effector: Optional[BonusSideEffector] = None
        self._orchestrator: Optional[ClaimOrchestrator] = None
        self._sweeper: Optional[ReconciliationSweeper] = None
        self._batch_scheduler: Optional[BatchMintScheduler] = None

        # Background jobs
        self._periodic_tasks: List[PeriodicTask] = []

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    async def initialize(self) -> None:
        """Initialize all services and establish connections."""
        await self.database.connect()

        if self.settings.DATABASE_CREATE_TABLES:
            await self.database.create_tables()

    def start_background(self) -> None:
        """Start the sweeper and batch scheduler loops."""
        if self._periodic_tasks:
            return

        self._periodic_tasks = [
            PeriodicTask(
                name="reconciliation-sweep",
                job=self.sweeper.sweep,
                interval=self.settings.SWEEP_INTERVAL_SECONDS,
            ),
            PeriodicTask(
                name="batch-mint",
                job=self.batch_scheduler.run_batch,
                interval=self.settings.BATCH_INTERVAL_MINUTES * 60,
            ),
        ]
        for task in self._periodic_tasks:
            task.start()

    async def shutdown(self) -> None:
        """Cleanup resources and close connections."""
        for task in self._periodic_tasks:
            await task.stop()
        self._periodic_tasks = []

        if self._orchestrator:
            await self._orchestrator.drain(timeout=_DRAIN_TIMEOUT)

        if self._ledger_gateway:
            await self._ledger_gateway.close()

        if self._database:
            await self._database.disconnect()

    @property
    def periodic_tasks(self) -> List[PeriodicTask]:
        return list(self._periodic_tasks)

    # Infrastructure Getters

    @property
    def database(self) -> Database:
        """Get database instance."""
        if self._database is None:
            self._database = Database(
                database_url=self.settings.DATABASE_URL,
                echo=self.settings.DATABASE_ECHO,
            )
        return self._database

    @property
    def clock(self) -> IClock:
        if self._clock is None:
            self._clock = SystemClock()
        return self._clock

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Get circuit breaker guarding the ledger."""
        if self._circuit_breaker is None:
            self._circuit_breaker = CircuitBreaker(
                name="ledger",
                failure_threshold=self.settings.CB_FAILURE_THRESHOLD,
                recovery_timeout=self.settings.CB_TIMEOUT_SECONDS,
            )
        return self._circuit_breaker

    @property
    def ledger_gateway(self) -> ILedgerGateway:
        """Get token contract gateway instance."""
        if self._ledger_gateway is None:
            settings = self.settings
            self._ledger_gateway = Web3LedgerGateway(
                rpc_url=settings.CHAIN_RPC_URL,
                token_address=settings.TOKEN_CONTRACT_ADDRESS,
                private_key=settings.MINTER_PRIVATE_KEY,
                chain_id=settings.CHAIN_ID,
                request_timeout=settings.RPC_REQUEST_TIMEOUT,
                receipt_timeout=settings.RECEIPT_WAIT_TIMEOUT,
                receipt_poll_interval=settings.RECEIPT_POLL_INTERVAL,
                circuit_breaker=self.circuit_breaker,
            )
        return self._ledger_gateway

    # Repository Getters

    @property
    def claim_store(self) -> IClaimStore:
        if self._claim_store is None:
            self._claim_store = ClaimStore(self.database)
        return self._claim_store

    @property
    def referral_bonus_repository(self) -> IReferralBonusRepository:
        if self._referral_bonus_repository is None:
            self._referral_bonus_repository = ReferralBonusRepository(self.database)
        return self._referral_bonus_repository

    # Application Service Getters

    @property
    def bonus_side_effector(self) -> BonusSideEffector:
        """Get referral bonus side effector."""
        if self._bonus_side_effector is None:
            settings = self.settings
            fallback = (
                WalletAddress.parse(settings.REFERRAL_FALLBACK_ADDRESS)
                if settings.REFERRAL_FALLBACK_ADDRESS
                else None
            )
            self._bonus_side_effector = BonusSideEffector(
                ledger=self.ledger_gateway,
                referral_bonus_repository=self.referral_bonus_repository,
                policy=BonusPolicy(
                    enabled=settings.REFERRAL_ENABLED,
                    bonus_type=BonusType(settings.REFERRAL_BONUS_TYPE),
                    fixed_amount=settings.REFERRAL_BONUS_AMOUNT,
                    percent=settings.REFERRAL_BONUS_PERCENT,
                    silent_amount=settings.REFERRAL_SILENT_BONUS_AMOUNT,
                    fallback_address=fallback,
                ),
            )
        return self._bonus_side_effector

    @property
    def orchestrator(self) -> ClaimOrchestrator:
        """Get claim orchestrator."""
        if self._orchestrator is None:
            settings = self.settings
            self._orchestrator = ClaimOrchestrator(
                claim_store=self.claim_store,
                ledger=self.ledger_gateway,
                bonus_side_effector=self.bonus_side_effector,
                clock=self.clock,
                default_mint_amount=settings.MINT_AMOUNT,
                response_timeout=settings.CLAIM_RESPONSE_TIMEOUT,
                claim_lease=timedelta(minutes=settings.CLAIM_LEASE_MINUTES),
                explorer_url=settings.EXPLORER_URL,
            )
        return self._orchestrator

    @property
    def sweeper(self) -> ReconciliationSweeper:
        """Get reconciliation sweeper."""
        if self._sweeper is None:
            settings = self.settings
            self._sweeper = ReconciliationSweeper(
                claim_store=self.claim_store,
                ledger=self.ledger_gateway,
                clock=self.clock,
                timeout_window=timedelta(minutes=settings.PENDING_TIMEOUT_MINUTES),
                call_timeout=settings.LEDGER_CALL_TIMEOUT,
                concurrency=settings.SWEEP_CONCURRENCY,
            )
        return self._sweeper

    @property
    def batch_scheduler(self) -> BatchMintScheduler:
        """Get batch mint scheduler."""
        if self._batch_scheduler is None:
            settings = self.settings
            self._batch_scheduler = BatchMintScheduler(
                claim_store=self.claim_store,
                ledger=self.ledger_gateway,
                orchestrator=self.orchestrator,
                clock=self.clock,
                mint_amount=settings.MINT_AMOUNT,
                batch_size=settings.BATCH_SIZE,
                skip_balance_check=settings.BATCH_SKIP_BALANCE_CHECK,
                claim_lease=timedelta(minutes=settings.CLAIM_LEASE_MINUTES),
                call_timeout=settings.LEDGER_CALL_TIMEOUT,
            )
        return self._batch_scheduler


# Global container instance
_container: Optional[DIContainer] = None


def get_container() -> DIContainer:
    """Get global DI container instance."""
    global _container
    if _container is None:
        _container = DIContainer()
    return _container


def override_container(container: Optional[DIContainer]) -> None:
    """Replace global container (for testing)."""
    global _container
    _container = container


async def initialize_container() -> DIContainer:
    """Initialize and return DI container."""
    container = get_container()
    await container.initialize()
    return container


async def shutdown_container() -> None:
    """Shutdown DI container."""
    container = get_container()
    await container.shutdown()
