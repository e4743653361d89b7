"""
Smart-contract client for anchoring document digests.

The contract exposes:
    storeHash(bytes32)            -- write, signed by the server's chain key
    getHash(address) -> bytes32   -- last hash stored by an address
    verify(bytes32) -> bool       -- whether a hash has been stored

Connection, contract handle and signer are created lazily per instance.
Writes from one instance are serialized so each transaction gets a fresh
pending nonce; reads never touch the signer.
"""

import asyncio
import logging
from typing import Any, Optional

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from certchain.common.config import ZERO_ADDRESS, CertchainSettings
from certchain.common.exceptions import (
    ChainTransactionError,
    ConfigurationError,
    InvalidHashError,
)
from certchain.common.outbound import bounded, read_with_retry
from certchain.crypto.hashing import is_hex_digest

logger = logging.getLogger(__name__)

CONTRACT_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "storeHash",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "hash", "type": "bytes32"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getHash",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "bytes32"}],
    },
    {
        "type": "function",
        "name": "verify",
        "stateMutability": "view",
        "inputs": [{"name": "hash", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

UNKNOWN_CHAIN_ERROR = "Unknown error during the transaction"


def normalize_hash(value: str) -> str:
    """Return the contract's bytes32 form: ``0x`` + 64 lowercase hex chars."""
    body = value[2:] if value[:2] in ("0x", "0X") else value
    if len(value) not in (64, 66) or not is_hex_digest(body):
        raise InvalidHashError(
            "Hash must be 64 hex characters, or 66 with a 0x prefix "
            f"(got {len(value)} characters)"
        )
    return "0x" + body.lower()


def describe_chain_error(exc: BaseException) -> dict[str, Any]:
    """Best-effort {code, shortMessage, message} extraction for operators."""
    message = str(exc) or UNKNOWN_CHAIN_ERROR
    code = getattr(exc, "code", None) or type(exc).__name__
    short_message = getattr(exc, "short_message", None) or getattr(exc, "message", None)
    if not isinstance(short_message, str) or not short_message:
        short_message = message.splitlines()[0][:200]
    return {"code": str(code), "shortMessage": short_message, "message": message}


class ChainClient:
    """Async client for the hash-registry contract."""

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        private_key: str = "",
        chain_id: Optional[int] = None,
        timeout: float = 15.0,
        receipt_timeout: float = 120.0,
        read_retries: int = 1,
    ):
        self.rpc_url = rpc_url
        self.contract_address = contract_address
        self.chain_id = chain_id
        self.timeout = timeout
        self.receipt_timeout = receipt_timeout
        self.read_retries = read_retries
        self._private_key = private_key
        self._w3: Optional[AsyncWeb3] = None
        self._contract = None
        self._account = None
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: CertchainSettings) -> "ChainClient":
        return cls(
            rpc_url=settings.rpc_url,
            contract_address=settings.contract_address,
            private_key=settings.chain_private_key,
            chain_id=int(settings.chain_id) if settings.chain_id else None,
            timeout=settings.outbound_timeout,
            receipt_timeout=settings.receipt_timeout,
            read_retries=settings.read_retries,
        )

    # ── Lazy handles ──

    def _get_web3(self) -> AsyncWeb3:
        if self._w3 is None:
            if not self.rpc_url:
                raise ConfigurationError("CERTCHAIN_RPC_URL is not configured")
            self._w3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_url))
        return self._w3

    def _get_contract(self):
        if self._contract is None:
            if not self.contract_address or self.contract_address == ZERO_ADDRESS:
                raise ConfigurationError("CERTCHAIN_CONTRACT_ADDRESS is not configured")
            w3 = self._get_web3()
            self._contract = w3.eth.contract(
                address=Web3.to_checksum_address(self.contract_address),
                abi=CONTRACT_ABI,
            )
        return self._contract

    def _get_account(self):
        if self._account is None:
            if not self._private_key:
                raise ConfigurationError("CERTCHAIN_CHAIN_PRIVATE_KEY is not configured")
            self._account = Account.from_key(self._private_key)
        return self._account

    # ── Write ──

    async def store_hash(self, digest: str) -> str:
        """Anchor a digest and wait for confirmation. Returns the 0x tx hash.

        Failures propagate unmodified (apart from timeouts) and are never retried.
        """
        hash32 = bytes.fromhex(normalize_hash(digest)[2:])
        w3 = self._get_web3()
        contract = self._get_contract()
        account = self._get_account()

        async with self._write_lock:
            nonce = await bounded(
                "eth_getTransactionCount",
                w3.eth.get_transaction_count(account.address, "pending"),
                self.timeout,
            )
            tx_params: dict[str, Any] = {"from": account.address, "nonce": nonce}
            if self.chain_id is not None:
                tx_params["chainId"] = self.chain_id
            tx = await bounded(
                "storeHash build",
                contract.functions.storeHash(hash32).build_transaction(tx_params),
                self.timeout,
            )
            signed = account.sign_transaction(tx)
            sent = await bounded(
                "eth_sendRawTransaction",
                w3.eth.send_raw_transaction(signed.raw_transaction),
                self.timeout,
            )

        receipt = await bounded(
            "transaction receipt",
            w3.eth.wait_for_transaction_receipt(sent, timeout=self.receipt_timeout),
            self.receipt_timeout + self.timeout,
        )
        tx_hash = Web3.to_hex(receipt["transactionHash"])
        if receipt["status"] != 1:
            raise ChainTransactionError(tx_hash)
        logger.info("Anchored %s in tx %s", digest, tx_hash)
        return tx_hash

    # ── Read ──

    async def get_hash(self, address: Optional[str] = None) -> str:
        """Hash last stored by ``address`` (default: the signer), as 0x hex."""
        contract = self._get_contract()
        owner = Web3.to_checksum_address(address or self._get_account().address)
        raw = await read_with_retry(
            "getHash",
            lambda: contract.functions.getHash(owner).call(),
            self.timeout,
            self.read_retries,
        )
        return Web3.to_hex(raw)

    async def verify(self, digest: str) -> bool:
        hash32 = bytes.fromhex(normalize_hash(digest)[2:])
        contract = self._get_contract()
        return bool(
            await read_with_retry(
                "verify",
                lambda: contract.functions.verify(hash32).call(),
                self.timeout,
                self.read_retries,
            )
        )

    async def close(self) -> None:
        if self._w3 is not None:
            provider = self._w3.provider
            disconnect = getattr(provider, "disconnect", None)
            if disconnect is not None:
                await disconnect()
            self._w3 = None
            self._contract = None
