"""Error taxonomy for the deployment keeper."""

from typing import Optional


class KeeperError(Exception):
    """Base class for every keeper failure."""


class TransactionFailed(KeeperError):
    """A submitted transaction was rejected, reverted or never confirmed."""

    def __init__(self, reason: str, tx_hash: Optional[str] = None):
        self.reason = reason
        self.tx_hash = tx_hash
        if tx_hash:
            super().__init__(f"Transaction {tx_hash} failed: {reason}")
        else:
            super().__init__(f"Transaction rejected: {reason}")


class FundingFailed(KeeperError):
    """A value transfer from the funding signer did not complete."""

    def __init__(self, address: str, amount: int, reason: str):
        self.address = address
        self.amount = amount
        self.reason = reason
        super().__init__(f"Failed to fund {address} with {amount} wei: {reason}")


class BootstrapBroadcastFailed(KeeperError):
    """The pre-signed factory deployment could not be included."""

    def __init__(self, chain_id: int, factory_address: str, reason: str):
        self.chain_id = chain_id
        self.factory_address = factory_address
        self.reason = reason
        super().__init__(
            f"Bootstrap of factory {factory_address} on chain {chain_id:#x} failed: {reason}"
        )


class UnsupportedChain(KeeperError):
    """No deterministic deployment is configured for the chain id."""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        super().__init__(f"No deterministic deployment configured for chain {chain_id:#x}")
