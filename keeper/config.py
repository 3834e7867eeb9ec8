"""
Keeper configuration.

Networks, funding account and deterministic deployment records. Values come
from the environment (optionally a .env file) with development defaults.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import load_dotenv
from eth_account import Account as EthAccount
from eth_account.signers.local import LocalAccount

from .bootstrap import predict_factory_address, recover_deployer
from .chain import DEFAULT_CONFIRMATION_TIMEOUT
from .models import DeterministicDeployment, FundingPolicy, RelayerTarget

# Load environment variables from .env file
load_dotenv()

LOCAL_RPC_URL = "http://localhost:8545"
DEFAULT_MNEMONIC_FILE = "~/.secret/testnet-mnemonic.txt"
DEFAULT_MNEMONIC = " ".join(["test"] * 11 + ["junk"])
FUNDING_ACCOUNT_PATH = "m/44'/60'/0'/0/0"

DEFAULT_RELAYER_ADDRESS = "0x6ACf3Cfe652cCDF0A66178c57C6C723F51BDdE6E"
DEFAULT_RELAYER_TARGET_BALANCE = 2 * 10 ** 18
DEFAULT_INTERVAL_MINUTES = 60


@dataclass(frozen=True)
class Network:
    url: str
    chain_id: Optional[int] = None


def _infura(name: str) -> Network:
    return Network(f"https://{name}.infura.io/v3/{os.getenv('INFURA_ID')}")


def get_networks() -> Dict[str, Network]:
    return {
        "dev": Network(LOCAL_RPC_URL),
        # github action starts localgeth service, for gas calculations
        "localgeth": Network(LOCAL_RPC_URL),
        "sapphire_local": Network(LOCAL_RPC_URL, 0x5afd),
        "sapphire": Network("https://sapphire.oasis.io", 0x5afe),
        "sapphire_testnet": Network("https://testnet.sapphire.oasis.io", 0x5aff),
        "goerli": _infura("goerli"),
        "sepolia": _infura("sepolia"),
        "proxy": Network(LOCAL_RPC_URL),
    }


def get_network(name: str) -> Network:
    networks = get_networks()
    if name not in networks:
        raise ValueError(f"Unknown network {name!r}, expected one of: {', '.join(sorted(networks))}")
    network = networks[name]
    rpc_url = os.getenv("RPC_URL")
    if rpc_url:
        return Network(rpc_url, network.chain_id)
    return network


# Pre-signed factory deployments, hardhat-deploy "deterministicDeployment" format
DETERMINISTIC_DEPLOYMENTS = {
    0x5aff: {
        "funding": "10000000000000000",
        "deployer": "0xE1CB04A0fA36DdD16a06ea828007E35e1a3cBC37",
        "signedTx": "0xf8a78085174876e800830186a08080b853604580600e600039806000f350fe7fffffffffffffffffffffffffffffffffffffffffffffffffffffffffffffffe03601600081602082378035828234f58015156039578182fd5b8082525050506014600cf382b622a044ac748b68fe9b7ae964f2a272637b422b06981c8690ff57fa535c3a09851b69a060bc54c8ecc62cc2565c30a7be4b044c8e1997084b69e9036108818d13eaa2bf",
        "factory": "0x914d7Fec6aaC8cd542e72Bca78B30650d45643d7",
    },
    0x5afe: {
        "funding": "10000000000000000",
        "deployer": "0xE1CB04A0fA36DdD16a06ea828007E35e1a3cBC37",
        "signedTx": "0xf8a78085174876e800830186a08080b853604580600e600039806000f350fe7fffffffffffffffffffffffffffffffffffffffffffffffffffffffffffffffe03601600081602082378035828234f58015156039578182fd5b8082525050506014600cf382b620a0322f1c093633d4d1ace847573bf236ba2f66210952824ac47d65b445fedfb985a058b9dbaf0a2f88df0116ceb3d49b489ca7d5e72932802ac12885dc0e3ada3903",
        "factory": "0x914d7Fec6aaC8cd542e72Bca78B30650d45643d7",
    },
}


def load_registry(entries: Optional[Dict[int, Dict[str, str]]] = None) -> Dict[int, DeterministicDeployment]:
    entries = DETERMINISTIC_DEPLOYMENTS if entries is None else entries
    return {
        chain_id: DeterministicDeployment.from_config(chain_id, entry)
        for chain_id, entry in entries.items()
    }


def validate_registry(registry: Dict[int, DeterministicDeployment]) -> None:
    """Check every record's deployer and factory against its signed transaction."""
    for chain_id, deployment in registry.items():
        if deployment.chain_id != chain_id:
            raise ValueError(f"Registry key {chain_id:#x} holds a record for chain {deployment.chain_id:#x}")
        deployer = recover_deployer(deployment.signed_raw_transaction)
        if deployer != deployment.deployer_address:
            raise ValueError(
                f"Chain {chain_id:#x}: signed transaction is from {deployer}, "
                f"configured deployer is {deployment.deployer_address}"
            )
        factory = predict_factory_address(deployment.signed_raw_transaction)
        if factory != deployment.factory_address:
            raise ValueError(
                f"Chain {chain_id:#x}: signed transaction creates {factory}, "
                f"configured factory is {deployment.factory_address}"
            )


def load_mnemonic(path: Optional[str] = None) -> str:
    """Read the funding mnemonic, falling back to the development mnemonic."""
    path = os.path.expanduser(path or os.getenv("MNEMONIC_FILE") or DEFAULT_MNEMONIC_FILE)
    if os.path.exists(path):
        with open(path, "r", encoding="ascii") as f:
            return f.read().strip()
    return DEFAULT_MNEMONIC


def load_funding_signer() -> LocalAccount:
    private_key = os.getenv("PRIVATE_KEY")
    if private_key:
        return EthAccount.from_key(private_key)
    EthAccount.enable_unaudited_hdwallet_features()
    return EthAccount.from_mnemonic(load_mnemonic(), account_path=FUNDING_ACCOUNT_PATH)


class KeeperSettings:
    """Run settings read from the environment."""

    def __init__(self):
        self.relayer = RelayerTarget(os.getenv("RELAYER_ADDRESS", DEFAULT_RELAYER_ADDRESS))

        target_balance = int(os.getenv("RELAYER_TARGET_BALANCE", str(DEFAULT_RELAYER_TARGET_BALANCE)))
        low_water_mark = os.getenv("RELAYER_LOW_WATER_MARK")
        if low_water_mark is None:
            self.funding_policy = FundingPolicy.with_halving(target_balance)
        else:
            self.funding_policy = FundingPolicy(target_balance, int(low_water_mark))

        self.confirmation_timeout = float(os.getenv("CONFIRMATION_TIMEOUT", str(DEFAULT_CONFIRMATION_TIMEOUT)))
        self.interval_minutes = int(os.getenv("KEEPER_INTERVAL_MINUTES", str(DEFAULT_INTERVAL_MINUTES)))
        self.slack_webhook = os.getenv("SLACK_WEBHOOK")

        self.registry = load_registry()
