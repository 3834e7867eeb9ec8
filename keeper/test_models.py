#!/usr/bin/env python3
"""
Tests for keeper data models
"""

import pytest

from keeper.models import Account, DeterministicDeployment, FundingPolicy, RelayerTarget

RELAYER = "0x6ACf3Cfe652cCDF0A66178c57C6C723F51BDdE6E"


class TestFundingPolicy:
    def test_halving_policy(self):
        policy = FundingPolicy.with_halving(2 * 10 ** 18)
        assert policy.low_water_mark == 10 ** 18
        assert policy.target_balance == 2 * 10 ** 18

    def test_low_water_mark_above_target_rejected(self):
        with pytest.raises(ValueError, match="exceeds target_balance"):
            FundingPolicy(target_balance=10, low_water_mark=11)

    def test_negative_low_water_mark_rejected(self):
        with pytest.raises(ValueError):
            FundingPolicy(target_balance=10, low_water_mark=-1)

    def test_needs_topup_is_strict(self):
        policy = FundingPolicy.with_halving(100)
        assert not policy.needs_topup(50)
        assert policy.needs_topup(49)

    def test_shortfall(self):
        policy = FundingPolicy.with_halving(100)
        assert policy.shortfall(30) == 70
        assert policy.shortfall(150) == 0


class TestAddresses:
    def test_lowercase_address_is_checksummed(self):
        assert RelayerTarget(RELAYER.lower()).address == RELAYER

    def test_invalid_address_rejected(self):
        with pytest.raises(ValueError, match="Invalid account address"):
            RelayerTarget("0x1234")

    def test_account_balance_must_be_non_negative(self):
        with pytest.raises(ValueError):
            Account(address=RELAYER, balance=-1)


class TestDeterministicDeployment:
    ENTRY = {
        "funding": "10000000000000000",
        "deployer": "0xe1cb04a0fa36ddd16a06ea828007e35e1a3cbc37",
        "signedTx": "0xf8a780",
        "factory": "0x914d7fec6aac8cd542e72bca78b30650d45643d7",
    }

    def test_from_config(self):
        deployment = DeterministicDeployment.from_config(0x5aff, self.ENTRY)

        assert deployment.chain_id == 0x5aff
        assert deployment.required_funding == 10 ** 16
        assert deployment.signed_raw_transaction == b"\xf8\xa7\x80"
        assert deployment.deployer_address == "0xE1CB04A0fA36DdD16a06ea828007E35e1a3cBC37"
        assert deployment.factory_address == "0x914d7Fec6aaC8cd542e72Bca78B30650d45643d7"

    def test_missing_field(self):
        entry = dict(self.ENTRY)
        del entry["signedTx"]

        with pytest.raises(ValueError, match="signedTx"):
            DeterministicDeployment.from_config(0x5aff, entry)

    def test_empty_signed_transaction_rejected(self):
        entry = dict(self.ENTRY, signedTx="0x")

        with pytest.raises(ValueError, match="Empty signed transaction"):
            DeterministicDeployment.from_config(0x5aff, entry)


if __name__ == "__main__":
    pytest.main([__file__])
