"""
Deployment Keeper
=================

Idempotent deployment maintenance for the account abstraction contracts:
- DeterministicBootstrapper: places the CREATE2 factory at a fixed address
  by broadcasting a pre-signed transaction
- BalanceMaintainer: keeps the off-chain relayer account funded
"""

from .bootstrap import DeterministicBootstrapper, predict_factory_address
from .errors import (
    BootstrapBroadcastFailed,
    FundingFailed,
    KeeperError,
    TransactionFailed,
    UnsupportedChain,
)
from .models import Account, DeterministicDeployment, FundingPolicy, RelayerTarget
from .topup import BalanceMaintainer

__version__ = "0.1.0"
__author__ = "Sapphire Paymaster Team"

__all__ = [
    "Account",
    "BalanceMaintainer",
    "BootstrapBroadcastFailed",
    "DeterministicBootstrapper",
    "DeterministicDeployment",
    "FundingFailed",
    "FundingPolicy",
    "KeeperError",
    "RelayerTarget",
    "TransactionFailed",
    "UnsupportedChain",
    "predict_factory_address",
]
