"""
Deterministic factory bootstrap.

The factory is created by a transaction signed ahead of time by a throwaway
key. Its sender and creation nonce (zero) are fixed by the signature, so
broadcasting the same blob yields the same factory address on every chain
that accepts it, whoever pays for the broadcast.
"""

import logging
from typing import Any, Mapping, Optional

import rlp
from eth_account import Account as EthAccount
from eth_account.signers.local import LocalAccount
from eth_utils import keccak, to_canonical_address, to_checksum_address

from .chain import Chain
from .errors import BootstrapBroadcastFailed, TransactionFailed, UnsupportedChain
from .models import DeterministicDeployment
from .topup import transfer_and_wait

logger = logging.getLogger(__name__)

Registry = Mapping[int, DeterministicDeployment]


def recover_deployer(signed_raw_transaction: bytes) -> str:
    return EthAccount.recover_transaction(signed_raw_transaction)


def create_address(sender: str, nonce: int) -> str:
    """CREATE address: keccak(rlp([sender, nonce]))[12:]"""
    return to_checksum_address(keccak(rlp.encode([to_canonical_address(sender), nonce]))[12:])


def predict_factory_address(signed_raw_transaction: bytes) -> str:
    return create_address(recover_deployer(signed_raw_transaction), 0)


def lookup(chain_id: int, registry: Registry) -> DeterministicDeployment:
    try:
        return registry[chain_id]
    except KeyError:
        raise UnsupportedChain(chain_id) from None


class DeterministicBootstrapper:
    """Ensures the deterministic factory exists on the connected chain."""

    def __init__(self, chain: Chain):
        self.chain = chain

    def is_deployed(self, deployment: DeterministicDeployment) -> bool:
        return len(self.chain.get_code(deployment.factory_address)) > 0

    def ensure_deployed(
        self, chain_id: int, registry: Registry, signer: LocalAccount
    ) -> Optional[Mapping[str, Any]]:
        """
        Deploy the factory for chain_id unless code already exists at its address.

        Args:
            chain_id: Chain to bootstrap; must have an entry in registry
            registry: Deterministic deployments keyed by chain id
            signer: Account paying the deployer's gas prepayment

        Returns:
            Receipt of the factory deployment, or None if it was already present
        """
        deployment = lookup(chain_id, registry)
        if self.is_deployed(deployment):
            logger.debug(f"Factory already deployed at {deployment.factory_address} on chain {chain_id:#x}")
            return None

        self._fund_deployer(deployment, signer)

        try:
            receipt = self.chain.broadcast_raw(deployment.signed_raw_transaction).wait()
        except TransactionFailed as e:
            raise BootstrapBroadcastFailed(chain_id, deployment.factory_address, e.reason) from e

        logger.info(f"Deployed factory at {deployment.factory_address} on chain {chain_id:#x}")
        return receipt

    def _fund_deployer(self, deployment: DeterministicDeployment, signer: LocalAccount) -> None:
        balance = self.chain.get_balance(deployment.deployer_address)
        if balance >= deployment.required_funding:
            return
        shortfall = deployment.required_funding - balance
        transfer_and_wait(self.chain, signer, deployment.deployer_address, shortfall)
        logger.info(f"Funded deployer {deployment.deployer_address} with {shortfall}")
