"""
Chain access for the keeper.

The components never reach for an ambient provider: a chain handle is passed
to them explicitly, which lets tests swap in keeper.memory_chain.InMemoryChain.
"""

import logging
from typing import Any, Mapping, Protocol

import requests
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from .errors import KeeperError, TransactionFailed

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_TIMEOUT = 120

# Node rejections, RPC errors and transport failures
RPC_ERRORS = (Web3Exception, ValueError, requests.exceptions.RequestException)


class PendingTransaction(Protocol):
    tx_hash: str

    def wait(self) -> Mapping[str, Any]:
        ...


class ChainReader(Protocol):
    def get_balance(self, address: str) -> int:
        ...

    def get_code(self, address: str) -> bytes:
        ...


class TransactionSender(Protocol):
    def send(self, signer: LocalAccount, to: str, value: int) -> PendingTransaction:
        ...

    def broadcast_raw(self, raw_transaction: bytes) -> PendingTransaction:
        ...


class Chain(ChainReader, TransactionSender, Protocol):
    chain_id: int


class Web3PendingTransaction:
    """A submitted transaction awaiting its first confirmation."""

    def __init__(self, w3: Web3, tx_hash: bytes, timeout: float):
        self._w3 = w3
        self._raw_hash = tx_hash
        self._timeout = timeout
        self.tx_hash = Web3.to_hex(tx_hash)

    def wait(self) -> Mapping[str, Any]:
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(self._raw_hash, timeout=self._timeout)
        except TimeExhausted as e:
            raise TransactionFailed(f"not mined within {self._timeout}s", self.tx_hash) from e
        except RPC_ERRORS as e:
            raise TransactionFailed(f"receipt unavailable: {e}", self.tx_hash) from e
        if receipt["status"] != 1:
            raise TransactionFailed(f"reverted in block {receipt['blockNumber']}", self.tx_hash)
        logger.debug(f"Transaction {self.tx_hash} confirmed in block {receipt['blockNumber']}")
        return receipt


class Web3Chain:
    """ChainReader and TransactionSender backed by a web3.py handle."""

    def __init__(self, w3: Web3, confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT):
        self.w3 = w3
        self.confirmation_timeout = confirmation_timeout

    @property
    def chain_id(self) -> int:
        try:
            return self.w3.eth.chain_id
        except RPC_ERRORS as e:
            raise KeeperError(f"Failed to read chain id: {e}") from e

    def get_balance(self, address: str) -> int:
        address = Web3.to_checksum_address(address)
        try:
            return self.w3.eth.get_balance(address)
        except RPC_ERRORS as e:
            raise KeeperError(f"Failed to read balance of {address}: {e}") from e

    def get_code(self, address: str) -> bytes:
        address = Web3.to_checksum_address(address)
        try:
            return bytes(self.w3.eth.get_code(address))
        except RPC_ERRORS as e:
            raise KeeperError(f"Failed to read code at {address}: {e}") from e

    def send(self, signer: LocalAccount, to: str, value: int) -> Web3PendingTransaction:
        """Sign a plain value transfer locally and submit it."""
        tx = {
            "from": signer.address,
            "to": Web3.to_checksum_address(to),
            "value": value,
        }
        try:
            tx["nonce"] = self.w3.eth.get_transaction_count(signer.address, "pending")
            tx["gasPrice"] = self.w3.eth.gas_price
            tx["chainId"] = self.w3.eth.chain_id
            tx["gas"] = self.w3.eth.estimate_gas(tx)
            signed_tx = signer.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except RPC_ERRORS as e:
            raise TransactionFailed(str(e)) from e

        pending = Web3PendingTransaction(self.w3, tx_hash, self.confirmation_timeout)
        logger.debug(f"Transfer of {value} wei to {to} sent: {pending.tx_hash}")
        return pending

    def broadcast_raw(self, raw_transaction: bytes) -> Web3PendingTransaction:
        try:
            tx_hash = self.w3.eth.send_raw_transaction(raw_transaction)
        except RPC_ERRORS as e:
            raise TransactionFailed(str(e)) from e
        pending = Web3PendingTransaction(self.w3, tx_hash, self.confirmation_timeout)
        logger.debug(f"Raw transaction broadcast: {pending.tx_hash}")
        return pending


def connect(rpc_url: str) -> Web3:
    """Open an HTTP connection to the node at rpc_url."""
    w3 = Web3(Web3.HTTPProvider(rpc_url))
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    if not w3.is_connected():
        raise KeeperError(f"Could not connect to RPC URL: {rpc_url}")
    logger.info(f"Connected to blockchain at {rpc_url}")
    return w3
