"""Tests for chain.client with the web3 handles replaced by mocks."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from certchain.chain.client import ChainClient, describe_chain_error, normalize_hash
from certchain.common.config import ZERO_ADDRESS, CertchainSettings
from certchain.common.exceptions import (
    ChainTransactionError,
    ConfigurationError,
    InvalidHashError,
)

DIGEST = "ab" * 32
SIGNER_ADDRESS = "0x" + "12" * 20
TX_BYTES = b"\x11" * 32


def make_client(receipt_status: int = 1, **kwargs) -> ChainClient:
    client = ChainClient(
        rpc_url="http://rpc.test",
        contract_address="0x" + "34" * 20,
        private_key="0x" + "56" * 32,
        chain_id=84532,
        **kwargs,
    )
    w3 = MagicMock()
    w3.eth.get_transaction_count = AsyncMock(return_value=7)
    w3.eth.send_raw_transaction = AsyncMock(return_value=TX_BYTES)
    w3.eth.wait_for_transaction_receipt = AsyncMock(
        return_value={"transactionHash": TX_BYTES, "status": receipt_status}
    )
    contract = MagicMock()
    contract.functions.storeHash.return_value.build_transaction = AsyncMock(
        return_value={"to": "0x" + "34" * 20, "data": "0x"}
    )
    account = MagicMock()
    account.address = SIGNER_ADDRESS
    account.sign_transaction.return_value = MagicMock(raw_transaction=b"signed")

    client._w3 = w3
    client._contract = contract
    client._account = account
    return client


class TestNormalizeHash:
    def test_plain_hex(self):
        assert normalize_hash(DIGEST) == "0x" + DIGEST

    def test_prefixed(self):
        assert normalize_hash("0x" + DIGEST) == "0x" + DIGEST

    def test_uppercase_lowered(self):
        assert normalize_hash("0X" + DIGEST.upper()) == "0x" + DIGEST

    def test_short_rejected(self):
        with pytest.raises(InvalidHashError, match="got 62 characters"):
            normalize_hash("ab" * 31)

    def test_long_rejected(self):
        with pytest.raises(InvalidHashError):
            normalize_hash("ab" * 34)

    def test_non_hex_rejected(self):
        with pytest.raises(InvalidHashError):
            normalize_hash("zz" * 32)

    def test_65_chars_rejected(self):
        with pytest.raises(InvalidHashError):
            normalize_hash("0" + DIGEST)


class TestDescribeChainError:
    def test_plain_exception(self):
        info = describe_chain_error(RuntimeError("execution reverted\nmore detail"))
        assert info == {
            "code": "RuntimeError",
            "shortMessage": "execution reverted",
            "message": "execution reverted\nmore detail",
        }

    def test_uses_error_attributes(self):
        info = describe_chain_error(ChainTransactionError("0xdead"))
        assert info["code"] == "TRANSACTION_REVERTED"
        assert info["shortMessage"] == "transaction 0xdead reverted"

    def test_empty_message(self):
        info = describe_chain_error(RuntimeError())
        assert info["message"] == "Unknown error during the transaction"


class TestStoreHash:
    async def test_returns_tx_hash(self):
        client = make_client()
        tx_hash = await client.store_hash(DIGEST)
        assert tx_hash == "0x" + "11" * 32
        client._contract.functions.storeHash.assert_called_once_with(bytes.fromhex(DIGEST))

    async def test_pending_nonce_and_chain_id(self):
        client = make_client()
        await client.store_hash(DIGEST)
        client._w3.eth.get_transaction_count.assert_awaited_once_with(SIGNER_ADDRESS, "pending")
        params = client._contract.functions.storeHash.return_value.build_transaction.call_args[0][0]
        assert params == {"from": SIGNER_ADDRESS, "nonce": 7, "chainId": 84532}
        client._w3.eth.send_raw_transaction.assert_awaited_once_with(b"signed")

    async def test_reverted_receipt(self):
        client = make_client(receipt_status=0)
        with pytest.raises(ChainTransactionError):
            await client.store_hash(DIGEST)

    async def test_send_failure_propagates_without_retry(self):
        client = make_client()
        client._w3.eth.send_raw_transaction = AsyncMock(side_effect=ValueError("nonce too low"))
        with pytest.raises(ValueError, match="nonce too low"):
            await client.store_hash(DIGEST)
        assert client._w3.eth.send_raw_transaction.await_count == 1

    async def test_invalid_digest_never_sent(self):
        client = make_client()
        with pytest.raises(InvalidHashError):
            await client.store_hash("abc")
        client._w3.eth.send_raw_transaction.assert_not_awaited()

    async def test_concurrent_writes_fetch_nonce_in_turn(self):
        client = make_client()
        order = []

        async def nonce(address, block):
            order.append("nonce")
            await asyncio.sleep(0)
            return len(order)

        async def send(raw):
            order.append("send")
            return TX_BYTES

        client._w3.eth.get_transaction_count = nonce
        client._w3.eth.send_raw_transaction = send
        await asyncio.gather(client.store_hash(DIGEST), client.store_hash("cd" * 32))
        assert order == ["nonce", "send", "nonce", "send"]


class TestReads:
    async def test_verify_true(self):
        client = make_client()
        client._contract.functions.verify.return_value.call = AsyncMock(return_value=True)
        assert await client.verify(DIGEST) is True
        client._contract.functions.verify.assert_called_with(bytes.fromhex(DIGEST))

    async def test_verify_retries_once(self):
        client = make_client(read_retries=1)
        call = AsyncMock(side_effect=[ConnectionError("flaky"), False])
        client._contract.functions.verify.return_value.call = call
        assert await client.verify(DIGEST) is False
        assert call.await_count == 2

    async def test_verify_gives_up_after_retry(self):
        client = make_client(read_retries=1)
        call = AsyncMock(side_effect=ConnectionError("down"))
        client._contract.functions.verify.return_value.call = call
        with pytest.raises(ConnectionError):
            await client.verify(DIGEST)
        assert call.await_count == 2

    async def test_get_hash_defaults_to_signer(self):
        client = make_client()
        client._contract.functions.getHash.return_value.call = AsyncMock(
            return_value=bytes.fromhex(DIGEST)
        )
        assert await client.get_hash() == "0x" + DIGEST
        owner = client._contract.functions.getHash.call_args[0][0]
        assert owner.lower() == SIGNER_ADDRESS


class TestConfiguration:
    def test_missing_rpc_url(self):
        client = ChainClient(rpc_url="", contract_address="0x" + "34" * 20)
        with pytest.raises(ConfigurationError, match="RPC_URL"):
            client._get_web3()

    async def test_zero_contract_address(self):
        client = ChainClient(rpc_url="http://rpc.test", contract_address=ZERO_ADDRESS)
        with pytest.raises(ConfigurationError, match="CONTRACT_ADDRESS"):
            await client.verify(DIGEST)

    async def test_write_needs_private_key(self):
        client = make_client()
        client._account = None
        client._private_key = ""
        with pytest.raises(ConfigurationError, match="PRIVATE_KEY"):
            await client.store_hash(DIGEST)

    def test_from_settings(self):
        settings = CertchainSettings(
            rpc_url="http://rpc.test", chain_id="8453", outbound_timeout=3.0, read_retries=2,
        )
        client = ChainClient.from_settings(settings)
        assert client.chain_id == 8453
        assert client.timeout == 3.0
        assert client.read_retries == 2
