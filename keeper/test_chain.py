#!/usr/bin/env python3
"""
Tests for the web3-backed chain handle
The Web3 object is replaced by a MagicMock; no node is required
"""

from unittest.mock import MagicMock, PropertyMock

import pytest
import requests
from eth_account import Account as EthAccount
from hexbytes import HexBytes
from web3.exceptions import TimeExhausted, Web3RPCError

from keeper.chain import Web3Chain, Web3PendingTransaction
from keeper.errors import KeeperError, TransactionFailed

FUNDER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
RELAYER = "0x6ACf3Cfe652cCDF0A66178c57C6C723F51BDdE6E"
TX_HASH = b"\x12" * 32


def make_w3():
    w3 = MagicMock()
    w3.eth.chain_id = 0x5aff
    w3.eth.gas_price = 100 * 10 ** 9
    w3.eth.get_transaction_count.return_value = 3
    w3.eth.estimate_gas.return_value = 21000
    w3.eth.send_raw_transaction.return_value = HexBytes(TX_HASH)
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 42}
    return w3


class TestWeb3ChainReads:
    def setup_method(self):
        self.w3 = make_w3()
        self.chain = Web3Chain(self.w3)

    def test_get_balance_uses_checksum_address(self):
        self.w3.eth.get_balance.return_value = 5

        assert self.chain.get_balance(RELAYER.lower()) == 5
        self.w3.eth.get_balance.assert_called_once_with(RELAYER)

    def test_get_code_returns_bytes(self):
        self.w3.eth.get_code.return_value = HexBytes("0x6000")

        code = self.chain.get_code(RELAYER)

        assert code == b"\x60\x00"
        assert isinstance(code, bytes)

    def test_empty_code(self):
        self.w3.eth.get_code.return_value = HexBytes(b"")
        assert self.chain.get_code(RELAYER) == b""

    def test_chain_id_comes_from_node(self):
        assert self.chain.chain_id == 0x5aff

    def test_unreachable_node_on_balance_read(self):
        self.w3.eth.get_balance.side_effect = requests.exceptions.ConnectionError("node down")

        with pytest.raises(KeeperError, match="Failed to read balance of 0x6ACf") as excinfo:
            self.chain.get_balance(RELAYER)

        assert isinstance(excinfo.value.__cause__, requests.exceptions.ConnectionError)

    def test_rpc_error_on_code_read(self):
        self.w3.eth.get_code.side_effect = Web3RPCError("header not found")

        with pytest.raises(KeeperError, match="header not found"):
            self.chain.get_code(RELAYER)

    def test_rpc_error_on_chain_id_read(self):
        type(self.w3.eth).chain_id = PropertyMock(side_effect=requests.exceptions.Timeout("slow"))

        with pytest.raises(KeeperError, match="Failed to read chain id"):
            self.chain.chain_id


class TestWeb3ChainSend:
    """Test class for locally signed value transfers"""

    def setup_method(self):
        self.w3 = make_w3()
        self.chain = Web3Chain(self.w3, confirmation_timeout=30)
        self.signer = EthAccount.from_key(FUNDER_KEY)

    def test_transfer_is_signed_and_sent(self):
        pending = self.chain.send(self.signer, RELAYER, 10 ** 18)

        assert pending.tx_hash == "0x" + "12" * 32
        self.w3.eth.get_transaction_count.assert_called_once_with(self.signer.address, "pending")
        raw = self.w3.eth.send_raw_transaction.call_args[0][0]
        assert EthAccount.recover_transaction(raw) == self.signer.address

    def test_estimate_gas_sees_transfer_fields(self):
        self.chain.send(self.signer, RELAYER, 7)

        tx = self.w3.eth.estimate_gas.call_args[0][0]
        assert tx["to"] == RELAYER
        assert tx["value"] == 7
        assert tx["nonce"] == 3
        assert tx["chainId"] == 0x5aff

    def test_wait_returns_receipt(self):
        receipt = self.chain.send(self.signer, RELAYER, 1).wait()

        assert receipt["blockNumber"] == 42
        self.w3.eth.wait_for_transaction_receipt.assert_called_once_with(HexBytes(TX_HASH), timeout=30)

    def test_rejected_submission_raises(self):
        self.w3.eth.send_raw_transaction.side_effect = ValueError("insufficient funds for transfer")

        with pytest.raises(TransactionFailed, match="insufficient funds"):
            self.chain.send(self.signer, RELAYER, 1)

    def test_reverted_receipt_raises(self):
        self.w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 43}

        with pytest.raises(TransactionFailed) as excinfo:
            self.chain.send(self.signer, RELAYER, 1).wait()

        assert excinfo.value.tx_hash == "0x" + "12" * 32
        assert "reverted in block 43" in str(excinfo.value)

    def test_unmined_transaction_raises(self):
        self.w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("timeout")

        with pytest.raises(TransactionFailed, match="not mined within 30"):
            self.chain.send(self.signer, RELAYER, 1).wait()

    def test_receipt_rpc_error_raises(self):
        self.w3.eth.wait_for_transaction_receipt.side_effect = Web3RPCError("header not found")

        with pytest.raises(TransactionFailed, match="receipt unavailable: header not found") as excinfo:
            self.chain.send(self.signer, RELAYER, 1).wait()

        assert excinfo.value.tx_hash == "0x" + "12" * 32

    def test_transport_error_on_submission_raises(self):
        self.w3.eth.send_raw_transaction.side_effect = requests.exceptions.ConnectionError("reset")

        with pytest.raises(TransactionFailed, match="reset"):
            self.chain.send(self.signer, RELAYER, 1)


class TestWeb3ChainBroadcast:
    def setup_method(self):
        self.w3 = make_w3()
        self.chain = Web3Chain(self.w3)

    def test_raw_transaction_is_sent_unchanged(self):
        raw = bytes.fromhex("f86b0180")

        pending = self.chain.broadcast_raw(raw)

        self.w3.eth.send_raw_transaction.assert_called_once_with(raw)
        assert isinstance(pending, Web3PendingTransaction)

    def test_node_rejection_raises(self):
        self.w3.eth.send_raw_transaction.side_effect = ValueError("already known")

        with pytest.raises(TransactionFailed, match="already known"):
            self.chain.broadcast_raw(b"\xf8")


if __name__ == "__main__":
    pytest.main([__file__])
