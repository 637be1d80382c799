"""
Ledger gateway backed by web3.py.

Talks to an EVM JSON-RPC node through AsyncWeb3. Every public
operation is a single attempt guarded by a circuit breaker; transport
errors become ChainUnavailableError and chain-side refusals become
SubmissionRejectedError. A lost broadcast reply or receipt becomes
SubmissionPendingError carrying the signed hash.
"""

import asyncio
import time
from decimal import Decimal
from typing import Optional, Sequence

import aiohttp
from eth_account import Account
from web3 import AsyncWeb3, Web3
from web3.exceptions import (
    ContractLogicError,
    TimeExhausted,
    TransactionNotFound,
    Web3Exception,
)
from web3.providers.rpc import AsyncHTTPProvider

from monnayeur.domain.exceptions.ledger import (
    ChainUnavailableError,
    LedgerError,
    SubmissionPendingError,
    SubmissionRejectedError,
)
from monnayeur.domain.services.i_ledger_gateway import (
    ILedgerGateway,
    ReceiptStatus,
)
from monnayeur.domain.value_objects.wallet_address import WalletAddress
from monnayeur.infrastructure.blockchain.circuit_breaker import CircuitBreaker
from monnayeur.infrastructure.blockchain.token_abi import MINTABLE_TOKEN_ABI
from monnayeur.infrastructure.monitoring.logger import get_logger
from monnayeur.infrastructure.monitoring.metrics import (
    ledger_request_duration_seconds,
    ledger_requests_total,
)

logger = get_logger(__name__)

# Node error fragments meaning the transaction itself is unacceptable
_REJECTION_MARKERS = (
    "nonce",
    "gas",
    "insufficient funds",
    "underpriced",
    "revert",
    "execution reverted",
)

_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


class Web3LedgerGateway(ILedgerGateway):
    """
    Token contract gateway using AsyncWeb3.

    Submissions from the minter account are serialized so each
    transaction gets the next pending nonce.
    """

    def __init__(
        self,
        rpc_url: str,
        token_address: str,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        request_timeout: float = 30.0,
        receipt_timeout: float = 120.0,
        receipt_poll_interval: float = 2.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        w3: Optional[AsyncWeb3] = None,
    ):
        """
        Initialize gateway.

        Args:
            rpc_url: JSON-RPC endpoint
            token_address: Mintable token contract address
            private_key: Minter account key (required for mint calls)
            chain_id: Expected chain id, pinned into transactions
            request_timeout: Per-RPC HTTP timeout in seconds
            receipt_timeout: How long mint() waits for inclusion
            receipt_poll_interval: Receipt polling interval in seconds
            circuit_breaker: Optional breaker (default: 5 failures / 60s)
            w3: Optional preconfigured AsyncWeb3 (for tests)
        """
        self.w3 = w3 or AsyncWeb3(
            AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=request_timeout)},
            )
        )
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(token_address),
            abi=MINTABLE_TOKEN_ABI,
        )
        self.account = Account.from_key(private_key) if private_key else None
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self.receipt_poll_interval = receipt_poll_interval
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name="ledger")

        self._nonce_lock = asyncio.Lock()
        self._decimals: Optional[int] = None

    # ================================================================
    # Public operations
    # ================================================================

    async def balance_of(self, address: WalletAddress) -> Decimal:
        async def _balance() -> Decimal:
            decimals = await self._get_decimals()
            raw = await self.contract.functions.balanceOf(address.checksummed).call()
            return Decimal(raw) / (Decimal(10) ** decimals)

        return await self._call("balance_of", _balance)

    async def mint(self, address: WalletAddress, amount: Decimal) -> str:
        async def _mint() -> str:
            units = await self._to_base_units(amount)
            fn = self.contract.functions.mint(address.checksummed, units)
            return await self._submit(fn, f"mint {amount} to {address.truncated()}")

        return await self._call("mint", _mint)

    async def batch_mint(
        self,
        addresses: Sequence[WalletAddress],
        amounts: Sequence[Decimal],
    ) -> str:
        if len(addresses) != len(amounts):
            raise ValueError("addresses and amounts must have equal length")
        if not addresses:
            raise ValueError("batch_mint requires at least one recipient")

        async def _batch_mint() -> str:
            units = [await self._to_base_units(a) for a in amounts]
            recipients = [a.checksummed for a in addresses]
            fn = self.contract.functions.batchMint(recipients, units)
            return await self._submit(fn, f"batch mint to {len(recipients)} wallets")

        return await self._call("batch_mint", _batch_mint)

    async def get_receipt(self, tx_hash: str) -> ReceiptStatus:
        async def _receipt() -> ReceiptStatus:
            try:
                receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return ReceiptStatus.PENDING
            return ReceiptStatus.SUCCESS if receipt["status"] == 1 else ReceiptStatus.REVERTED

        return await self._call("get_receipt", _receipt)

    async def close(self) -> None:
        """Close the provider's HTTP session."""
        await self.w3.provider.disconnect()

    # ================================================================
    # Internals
    # ================================================================

    async def _call(self, operation: str, func):
        """Run one gateway operation with breaker, metrics and error mapping."""
        start = time.monotonic()
        status = "success"
        try:
            return await self.circuit_breaker.call(self._translated, operation, func)
        except SubmissionPendingError:
            status = "pending"
            raise
        except SubmissionRejectedError:
            status = "rejected"
            raise
        except ChainUnavailableError:
            status = "unavailable"
            raise
        finally:
            ledger_requests_total.labels(operation=operation, status=status).inc()
            ledger_request_duration_seconds.labels(operation=operation).observe(
                time.monotonic() - start
            )

    @staticmethod
    async def _translated(operation: str, func):
        try:
            return await func()
        except LedgerError:
            raise
        except ContractLogicError as e:
            raise SubmissionRejectedError(f"{operation}: contract reverted") from e
        except _TRANSPORT_ERRORS as e:
            raise ChainUnavailableError(
                f"{operation}: RPC unavailable ({type(e).__name__})", operation
            ) from e
        except (Web3Exception, ValueError) as e:
            message = str(e).lower()
            if any(marker in message for marker in _REJECTION_MARKERS):
                raise SubmissionRejectedError(f"{operation}: rejected by node") from e
            raise ChainUnavailableError(
                f"{operation}: RPC error ({type(e).__name__})", operation
            ) from e

    async def _submit(self, contract_fn, description: str) -> str:
        """
        Sign, broadcast and wait for inclusion.

        Once the transaction is signed its hash is known. Any later
        failure to observe the broadcast or the receipt raises
        SubmissionPendingError so the caller tracks it by hash instead of
        submitting again.
        """
        if self.account is None:
            raise SubmissionRejectedError("No minter key configured")

        async with self._nonce_lock:
            nonce = await self.w3.eth.get_transaction_count(
                self.account.address, "pending"
            )
            params = {"from": self.account.address, "nonce": nonce}
            if self.chain_id is not None:
                params["chainId"] = self.chain_id

            tx = await contract_fn.build_transaction(params)
            signed = self.account.sign_transaction(tx)
            tx_hash = Web3.to_hex(signed.hash)

            # The node may hold the transaction even if the reply was lost
            try:
                await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            except _TRANSPORT_ERRORS as e:
                logger.warning(
                    f"Broadcast of {tx_hash} unacknowledged "
                    f"({type(e).__name__}); tracking by hash"
                )
                raise SubmissionPendingError(tx_hash) from e
            except (Web3Exception, ValueError) as e:
                if "already known" not in str(e).lower():
                    raise
                logger.info(f"Node already holds {tx_hash}; tracking by hash")
                raise SubmissionPendingError(tx_hash) from e

        logger.info(
            f"Broadcast {description}: {tx_hash} (nonce {nonce})",
            extra={"tx_hash": tx_hash},
        )

        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.receipt_timeout,
                poll_latency=self.receipt_poll_interval,
            )
        except TimeExhausted as e:
            logger.warning(f"Transaction {tx_hash} not included after {self.receipt_timeout}s")
            raise SubmissionPendingError(tx_hash) from e
        except (*_TRANSPORT_ERRORS, Web3Exception) as e:
            logger.warning(f"Lost receipt tracking for {tx_hash}: {e}")
            raise SubmissionPendingError(tx_hash) from e

        if receipt["status"] != 1:
            raise SubmissionRejectedError(f"Transaction {tx_hash} reverted", tx_hash)

        logger.info(
            f"Transaction {tx_hash} included in block {receipt['blockNumber']}",
            extra={"tx_hash": tx_hash},
        )
        return tx_hash

    async def _get_decimals(self) -> int:
        if self._decimals is None:
            self._decimals = int(await self.contract.functions.decimals().call())
        return self._decimals

    async def _to_base_units(self, amount: Decimal) -> int:
        decimals = await self._get_decimals()
        return int((Decimal(amount) * (Decimal(10) ** decimals)).to_integral_value())
