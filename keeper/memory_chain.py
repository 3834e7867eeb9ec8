"""
In-memory chain backend.

Test backend standing in for a node; the CLI always talks to a real node.
Value transfers are free of gas; raw transactions are decoded, their sender
recovered from the signature, and
contract creations leave the init code at the CREATE address as a stand-in
for deployed code. No EVM execution takes place.
"""

from collections import defaultdict
from typing import Any, Dict, List, Mapping

import rlp
from eth_account import Account as EthAccount
from eth_account.signers.local import LocalAccount
from eth_utils import big_endian_to_int, keccak, to_checksum_address
from web3 import Web3

from .bootstrap import create_address
from .errors import TransactionFailed


class MemoryPendingTransaction:
    def __init__(self, tx_hash: str, receipt: Mapping[str, Any], reverted: bool = False):
        self.tx_hash = tx_hash
        self._receipt = receipt
        self._reverted = reverted

    def wait(self) -> Mapping[str, Any]:
        if self._reverted:
            raise TransactionFailed(f"reverted in block {self._receipt['blockNumber']}", self.tx_hash)
        return self._receipt


class InMemoryChain:
    """Balances, code and nonces for a single simulated chain."""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        self.balances: Dict[str, int] = defaultdict(int)
        self.code: Dict[str, bytes] = {}
        self.nonces: Dict[str, int] = defaultdict(int)
        self.transactions: List[Dict[str, Any]] = []
        self.block_number = 0
        self.revert_next = False
        self._known_hashes = set()

    def set_balance(self, address: str, balance: int) -> None:
        self.balances[to_checksum_address(address)] = balance

    def set_code(self, address: str, code: bytes) -> None:
        self.code[to_checksum_address(address)] = code

    def get_balance(self, address: str) -> int:
        return self.balances[to_checksum_address(address)]

    def get_code(self, address: str) -> bytes:
        return self.code.get(to_checksum_address(address), b"")

    def send(self, signer: LocalAccount, to: str, value: int) -> MemoryPendingTransaction:
        sender = to_checksum_address(signer.address)
        to = to_checksum_address(to)
        if value < 0:
            raise TransactionFailed("negative value")
        if self.balances[sender] < value:
            raise TransactionFailed(f"insufficient funds for transfer: balance {self.balances[sender]}, value {value}")

        nonce = self.nonces[sender]
        tx_hash = Web3.to_hex(keccak(text=f"{self.chain_id}:{sender}:{nonce}:{to}:{value}"))
        if self._take_revert():
            self.nonces[sender] += 1
            return self._record("transfer", tx_hash, sender, to, value, reverted=True)

        self.balances[sender] -= value
        self.balances[to] += value
        self.nonces[sender] += 1
        return self._record("transfer", tx_hash, sender, to, value)

    def broadcast_raw(self, raw_transaction: bytes) -> MemoryPendingTransaction:
        raw_transaction = bytes(raw_transaction)
        if not raw_transaction or raw_transaction[0] < 0xc0:
            raise TransactionFailed("only legacy transactions are supported")
        try:
            fields = rlp.decode(raw_transaction)
        except rlp.DecodingError as e:
            raise TransactionFailed(f"undecodable transaction: {e}") from e
        if len(fields) != 9 or not all(isinstance(field, bytes) for field in fields):
            raise TransactionFailed("malformed legacy transaction")

        nonce, gas_price, gas, value, v = (
            big_endian_to_int(fields[i]) for i in (0, 1, 2, 4, 6)
        )
        to, data = fields[3], fields[5]
        if v >= 35 and (v - 35) // 2 != self.chain_id:
            raise TransactionFailed(f"invalid chain id {(v - 35) // 2:#x}, expected {self.chain_id:#x}")

        tx_hash = Web3.to_hex(keccak(raw_transaction))
        if tx_hash in self._known_hashes:
            raise TransactionFailed("already known")

        try:
            sender = EthAccount.recover_transaction(raw_transaction)
        except Exception as e:
            raise TransactionFailed(f"invalid sender signature: {e}") from e
        if nonce != self.nonces[sender]:
            raise TransactionFailed(f"nonce too low: next nonce {self.nonces[sender]}, tx nonce {nonce}")
        cost = gas * gas_price + value
        if self.balances[sender] < cost:
            raise TransactionFailed(
                f"insufficient funds for gas * price + value: balance {self.balances[sender]}, tx cost {cost}"
            )

        self._known_hashes.add(tx_hash)
        self.balances[sender] -= cost
        self.nonces[sender] += 1

        if to:
            recipient = to_checksum_address(to)
            self.balances[recipient] += value
            return self._record("raw", tx_hash, sender, recipient, value)

        contract = create_address(sender, nonce)
        self.balances[contract] += value
        self.code[contract] = data or b"\x00"
        return self._record("raw", tx_hash, sender, None, value, contract_address=contract)

    def _take_revert(self) -> bool:
        reverted, self.revert_next = self.revert_next, False
        return reverted

    def _record(self, kind, tx_hash, sender, to, value, contract_address=None, reverted=False):
        self.block_number += 1
        self.transactions.append({
            "kind": kind,
            "hash": tx_hash,
            "from": sender,
            "to": to,
            "value": value,
        })
        receipt = {
            "transactionHash": tx_hash,
            "blockNumber": self.block_number,
            "status": 0 if reverted else 1,
            "contractAddress": contract_address,
        }
        return MemoryPendingTransaction(tx_hash, receipt, reverted=reverted)
