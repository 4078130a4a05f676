"""
test_address.py - Unit tests for bech32 address helpers
"""

import pytest

from stakeledger import DecodeError, decode_address, encode_address, is_smart_contract_address
from stakeledger.config import (
    DEFAULT_DELEGATION_LEGACY_ADDRESS, DEFAULT_DELEGATION_MANAGER_ADDRESS, DEFAULT_STAKING_ADDRESS,
)

from tests.fake_index import make_address


class TestEncoding:

    def test_round_trip(self):
        pubkey = bytes(range(32))
        address = encode_address(pubkey)
        assert address.startswith("erd1")
        assert decode_address(address) == pubkey

    def test_encode_wrong_length(self):
        with pytest.raises(DecodeError):
            encode_address(b"\x01" * 20)

    @pytest.mark.parametrize("address", ["4294967295", "", "erd1notanaddress", "erd1alice"])
    def test_decode_invalid(self, address):
        with pytest.raises(DecodeError):
            decode_address(address)


class TestSmartContractDetection:

    @pytest.mark.parametrize("address", [
        DEFAULT_STAKING_ADDRESS,
        DEFAULT_DELEGATION_LEGACY_ADDRESS,
        DEFAULT_DELEGATION_MANAGER_ADDRESS,
    ])
    def test_system_contracts(self, address):
        assert is_smart_contract_address(address)

    def test_user_address(self):
        assert not is_smart_contract_address(make_address(5))
        assert is_smart_contract_address(make_address(5, contract=True))

    def test_sentinel_sender_is_not_contract(self):
        assert not is_smart_contract_address("4294967295")
