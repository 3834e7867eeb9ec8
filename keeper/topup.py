"""Relayer balance maintenance."""

import logging
from typing import Any, Mapping, Optional

from eth_account.signers.local import LocalAccount

from .chain import Chain
from .errors import FundingFailed, TransactionFailed
from .models import Account, FundingPolicy, RelayerTarget

logger = logging.getLogger(__name__)


def transfer_and_wait(chain: Chain, signer: LocalAccount, to: str, amount: int) -> Mapping[str, Any]:
    """Send amount wei from signer to `to` and block for one confirmation."""
    try:
        return chain.send(signer, to, amount).wait()
    except TransactionFailed as e:
        raise FundingFailed(to, amount, e.reason) from e


class BalanceMaintainer:
    """Tops up an account once its balance decays below the low-water mark."""

    def __init__(self, chain: Chain):
        self.chain = chain

    def current(self, target: RelayerTarget) -> Account:
        return Account(address=target.address, balance=self.chain.get_balance(target.address))

    def ensure_funded(
        self, target: RelayerTarget, policy: FundingPolicy, signer: LocalAccount
    ) -> Optional[Mapping[str, Any]]:
        """
        Refill target to policy.target_balance if it fell below policy.low_water_mark.

        Returns:
            The transfer receipt, or None when no top-up was needed
        """
        account = self.current(target)
        if not policy.needs_topup(account.balance):
            logger.debug(f"Relayer {account.address} holds {account.balance} wei, no top-up needed")
            return None

        amount = policy.shortfall(account.balance)
        receipt = transfer_and_wait(self.chain, signer, account.address, amount)
        logger.info(f"Deposited {amount} for relayer {account.address}")
        return receipt
