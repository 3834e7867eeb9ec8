"""
Domain models for the deployment keeper.

All values are read fresh from the chain or from static configuration at the
start of a run; nothing here is persisted between runs.
"""

from dataclasses import dataclass
from typing import Any, Dict, Union

from web3 import Web3


def normalize_address(address: str) -> str:
    """Validate a 20-byte hex address and return its checksum form."""
    if not isinstance(address, str) or not Web3.is_address(address):
        raise ValueError(f"Invalid account address: {address!r}")
    return Web3.to_checksum_address(address)


@dataclass(frozen=True)
class Account:
    """An address together with a balance observed during this run"""
    address: str
    balance: int

    def __post_init__(self):
        object.__setattr__(self, "address", normalize_address(self.address))
        if self.balance < 0:
            raise ValueError("Balance must be non-negative")


@dataclass(frozen=True)
class RelayerTarget:
    """The account whose balance is kept funded"""
    address: str

    def __post_init__(self):
        object.__setattr__(self, "address", normalize_address(self.address))


@dataclass(frozen=True)
class FundingPolicy:
    """
    Hysteresis policy for top-ups.

    A top-up fires only when the balance is strictly below low_water_mark and
    then refills the account to exactly target_balance.
    """
    target_balance: int
    low_water_mark: int

    def __post_init__(self):
        if self.low_water_mark < 0:
            raise ValueError("low_water_mark must be non-negative")
        if self.low_water_mark > self.target_balance:
            raise ValueError(
                f"low_water_mark ({self.low_water_mark}) exceeds target_balance ({self.target_balance})"
            )

    @classmethod
    def with_halving(cls, target_balance: int) -> "FundingPolicy":
        return cls(target_balance=target_balance, low_water_mark=target_balance // 2)

    def needs_topup(self, balance: int) -> bool:
        return balance < self.low_water_mark

    def shortfall(self, balance: int) -> int:
        return max(self.target_balance - balance, 0)


@dataclass(frozen=True)
class DeterministicDeployment:
    """
    Pre-computed factory deployment for one chain.

    signed_raw_transaction is an opaque artifact signed ahead of time; it is
    broadcast verbatim and never re-signed.
    """
    chain_id: int
    deployer_address: str
    signed_raw_transaction: bytes
    required_funding: int
    factory_address: str

    def __post_init__(self):
        object.__setattr__(self, "deployer_address", normalize_address(self.deployer_address))
        object.__setattr__(self, "factory_address", normalize_address(self.factory_address))
        raw: Union[bytes, str] = self.signed_raw_transaction
        if isinstance(raw, str):
            raw = Web3.to_bytes(hexstr=raw)
        if not raw:
            raise ValueError(f"Empty signed transaction for chain {self.chain_id:#x}")
        object.__setattr__(self, "signed_raw_transaction", bytes(raw))
        if self.required_funding < 0:
            raise ValueError("required_funding must be non-negative")

    @classmethod
    def from_config(cls, chain_id: int, entry: Dict[str, Any]) -> "DeterministicDeployment":
        """Build from a {funding, deployer, signedTx, factory} record."""
        try:
            return cls(
                chain_id=int(chain_id),
                deployer_address=entry["deployer"],
                signed_raw_transaction=entry["signedTx"],
                required_funding=int(entry["funding"]),
                factory_address=entry["factory"],
            )
        except KeyError as e:
            raise ValueError(f"Deterministic deployment for chain {int(chain_id):#x} is missing {e}") from e
