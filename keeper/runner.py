#!/usr/bin/env python3
"""
Deployment keeper entry point.

Bootstraps the deterministic factory and tops up the relayer, once or on a
schedule. A failed run is not retried in-process; with --loop the next
scheduled run is the retry.
"""

import argparse
import logging
import os
import sys
import time
from datetime import datetime
from typing import Optional

import requests
import schedule
from eth_account.signers.local import LocalAccount

from .bootstrap import DeterministicBootstrapper
from .chain import Chain, Web3Chain, connect
from .config import KeeperSettings, get_network, get_networks, load_funding_signer, validate_registry
from .errors import KeeperError
from .topup import BalanceMaintainer

logger = logging.getLogger(__name__)


def configure_logging(log_file: str = "keeper.log") -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def run_once(chain: Chain, chain_id: int, settings: KeeperSettings, signer: LocalAccount) -> None:
    """Bootstrap the factory (where configured), then top up the relayer."""
    if chain_id in settings.registry:
        DeterministicBootstrapper(chain).ensure_deployed(chain_id, settings.registry, signer)
    else:
        logger.info(f"No deterministic deployment for chain {chain_id:#x}, skipping factory bootstrap")

    BalanceMaintainer(chain).ensure_funded(settings.relayer, settings.funding_policy, signer)


class Keeper:
    def __init__(
        self,
        chain: Chain,
        settings: KeeperSettings,
        signer: LocalAccount,
        expected_chain_id: Optional[int] = None,
    ):
        self.chain = chain
        self.settings = settings
        self.signer = signer
        self.expected_chain_id = expected_chain_id
        self.last_success_time: Optional[datetime] = None

    def run(self) -> None:
        chain_id = self.chain.chain_id
        if self.expected_chain_id is not None and chain_id != self.expected_chain_id:
            raise KeeperError(f"Connected to chain {chain_id:#x}, expected {self.expected_chain_id:#x}")

        logger.info(f"Running keeper on chain {chain_id:#x} with funding account {self.signer.address}")
        run_once(self.chain, chain_id, self.settings, self.signer)
        self.last_success_time = datetime.now()

    def run_scheduled(self) -> bool:
        """Run with error handling; failures are logged and alerted."""
        try:
            self.run()
            return True
        except KeeperError as e:
            logger.error(f"Keeper run failed: {e}")
            self._send_alert(f"Keeper run failed: {e}")
            return False
        except Exception as e:
            logger.exception(f"Keeper run failed unexpectedly: {e}")
            self._send_alert(f"Keeper run failed unexpectedly: {e}")
            return False

    def _send_alert(self, message: str) -> None:
        """Send alert via Slack"""
        if not self.settings.slack_webhook:
            return

        payload = {
            "text": f"Deployment keeper alert: {message}",
            "attachments": [
                {
                    "fields": [
                        {
                            "title": "Funding account",
                            "value": self.signer.address,
                            "short": True
                        },
                        {
                            "title": "Last success",
                            "value": str(self.last_success_time),
                            "short": True
                        }
                    ]
                }
            ]
        }
        try:
            response = requests.post(self.settings.slack_webhook, json=payload, timeout=10)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to send Slack alert: {e}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Bootstrap the deterministic factory and top up the relayer")
    parser.add_argument("--network", default=os.getenv("NETWORK", "dev"), choices=sorted(get_networks()))
    parser.add_argument("--loop", action="store_true", help="keep running on a schedule")
    args = parser.parse_args(argv)

    configure_logging()

    try:
        settings = KeeperSettings()
        validate_registry(settings.registry)
        network = get_network(args.network)
        chain = Web3Chain(connect(network.url), settings.confirmation_timeout)
        keeper = Keeper(chain, settings, load_funding_signer(), expected_chain_id=network.chain_id)
    except (KeeperError, ValueError) as e:
        logger.error(f"Failed to start keeper: {e}")
        return 2

    if not args.loop:
        return 0 if keeper.run_scheduled() else 1

    schedule.every(settings.interval_minutes).minutes.do(keeper.run_scheduled)

    logger.info("Running initial keeper pass...")
    keeper.run_scheduled()
    logger.info(f"Starting scheduled keeper (every {settings.interval_minutes} minutes)...")

    try:
        while True:
            schedule.run_pending()
            time.sleep(60)
    except KeyboardInterrupt:
        logger.info("Keeper stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
