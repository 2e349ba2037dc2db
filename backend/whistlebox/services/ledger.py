"""
Ledger anchoring - records complaint commitments on Ethereum.

The chain is a witness only: a transaction carrying the commitment digest
gives an independent, timestamped proof that the complaint existed in that
exact form. The transaction hash becomes the record's anchor reference.

With a contract address configured the digest goes through the
`fileComplaint(string)` function of the complaint registry contract
(which emits `ComplaintFiled`). Without one, the digest is embedded in the
data field of a zero-value self-send.

Anchoring never blocks intake by itself: `AnchorService.anchor` always
returns an `AnchorOutcome`. Whether a non-anchored outcome is fatal is the
caller's policy.
"""

import abc
import asyncio
import enum
import threading
from dataclasses import dataclass
from typing import Optional

import structlog

logger = structlog.get_logger()

COMPLAINT_REGISTRY_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "string", "name": "hash", "type": "string"},
            {"indexed": False, "internalType": "uint256", "name": "timestamp", "type": "uint256"},
        ],
        "name": "ComplaintFiled",
        "type": "event",
    },
    {
        "inputs": [{"internalType": "string", "name": "complaintHash", "type": "string"}],
        "name": "fileComplaint",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


class LedgerError(Exception):
    """Raised by ledger clients for network, signing or contract failures."""


class AnchorStatus(str, enum.Enum):
    ANCHORED = "anchored"
    DEGRADED = "degraded"   # attempted, ledger failed or timed out
    DISABLED = "disabled"   # no ledger configured


@dataclass(frozen=True)
class AnchorOutcome:
    status: AnchorStatus
    reference: Optional[str] = None
    error: Optional[str] = None

    @property
    def anchored(self) -> bool:
        return self.status == AnchorStatus.ANCHORED


class LedgerClient(abc.ABC):
    enabled = True

    @abc.abstractmethod
    def submit_commitment(self, digest: str) -> str:
        """Record `digest` on the ledger and return the transaction reference."""


class DisabledLedgerClient(LedgerClient):
    enabled = False

    def submit_commitment(self, digest: str) -> str:
        raise LedgerError("Ledger anchoring is not configured")


class Web3LedgerClient(LedgerClient):
    """
    Synchronous web3 client. Called from a worker thread by AnchorService.

    Nonce allocation and broadcast are serialized so concurrent anchors from
    one process do not reuse a nonce; waiting for receipts is not.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        contract_address: str = "",
        chain_id: int = 11155111,  # Sepolia
        gas: int = 30_000,
        receipt_timeout: float = 120,
        request_timeout: float = 10,
    ) -> None:
        from web3 import Web3, HTTPProvider
        from eth_account import Account

        self._w3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        self._account = Account.from_key(private_key)
        self._chain_id = chain_id
        self._gas = gas
        self._receipt_timeout = receipt_timeout
        self._lock = threading.Lock()
        self._contract = None
        if contract_address:
            self._contract = self._w3.eth.contract(
                address=Web3.to_checksum_address(contract_address),
                abi=COMPLAINT_REGISTRY_ABI,
            )

    @property
    def address(self) -> str:
        return self._account.address

    def _build_transaction(self, digest: str, nonce: int) -> dict:
        base = {
            "from": self._account.address,
            "nonce": nonce,
            "chainId": self._chain_id,
            "gasPrice": self._w3.eth.gas_price,
        }
        if self._contract is not None:
            return self._contract.functions.fileComplaint(digest).build_transaction(base)
        return {
            **base,
            "to": self._account.address,  # self-send, 0 ETH
            "value": 0,
            "gas": self._gas,
            "data": bytes.fromhex(digest),
        }

    def submit_commitment(self, digest: str) -> str:
        try:
            with self._lock:
                nonce = self._w3.eth.get_transaction_count(self._account.address, "pending")
                tx = self._build_transaction(digest, nonce)
                signed = self._account.sign_transaction(tx)
                tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)

            reference = self._w3.to_hex(tx_hash)
            logger.info("ledger_tx_sent", tx_hash=reference)

            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except LedgerError:
            raise
        except Exception as e:
            raise LedgerError(f"{type(e).__name__}: {e}") from e

        if receipt["status"] != 1:
            raise LedgerError(f"Transaction {reference} reverted")

        logger.info("ledger_tx_confirmed", tx_hash=reference, block_number=receipt["blockNumber"])
        return reference


class AnchorService:
    """
    Bounded, non-raising wrapper around a ledger client.
    """

    def __init__(self, client: LedgerClient, timeout_seconds: float = 15.0) -> None:
        self.client = client
        self.timeout_seconds = timeout_seconds

    @property
    def enabled(self) -> bool:
        return self.client.enabled

    async def anchor(self, digest: str) -> AnchorOutcome:
        if not self.client.enabled:
            return AnchorOutcome(status=AnchorStatus.DISABLED, error="ledger not configured")

        try:
            async with asyncio.timeout(self.timeout_seconds):
                reference = await asyncio.to_thread(self.client.submit_commitment, digest)
        except TimeoutError:
            # The worker thread may still land the transaction; reconciliation
            # only ever fills an empty reference, so a late tx is harmless.
            logger.warning("anchor_degraded", reason="timeout", timeout_seconds=self.timeout_seconds)
            return AnchorOutcome(status=AnchorStatus.DEGRADED, error="timeout")
        except Exception as e:
            logger.warning("anchor_degraded", reason=type(e).__name__, error=str(e))
            return AnchorOutcome(status=AnchorStatus.DEGRADED, error=type(e).__name__)

        if not reference:
            logger.warning("anchor_degraded", reason="empty_reference")
            return AnchorOutcome(status=AnchorStatus.DEGRADED, error="empty reference")

        return AnchorOutcome(status=AnchorStatus.ANCHORED, reference=reference)


def build_ledger_client(settings) -> LedgerClient:
    if not settings.ledger_enabled:
        logger.info("ledger_disabled")
        return DisabledLedgerClient()
    return Web3LedgerClient(
        rpc_url=settings.LEDGER_RPC_URL,
        private_key=settings.LEDGER_PRIVATE_KEY,
        contract_address=settings.LEDGER_CONTRACT_ADDRESS,
        chain_id=settings.LEDGER_CHAIN_ID,
        receipt_timeout=settings.ANCHOR_TIMEOUT_SECONDS,
    )
