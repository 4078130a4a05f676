"""
address.py - Bech32 address helpers

Addresses in the index are bech32 strings with the "erd" prefix over a
32-byte public key. Smart contract addresses are recognised by their eight
leading zero bytes.
"""

from __future__ import annotations

from bip_utils import Bech32Decoder, Bech32Encoder
from bip_utils.bech32 import Bech32ChecksumError

from .core import DecodeError


ADDRESS_HRP = "erd"
PUBKEY_LENGTH = 32
SC_ADDRESS_ZERO_PREFIX = 8


def encode_address(pubkey: bytes) -> str:
    """Render a 32-byte public key as a bech32 address."""
    if len(pubkey) != PUBKEY_LENGTH:
        raise DecodeError(f"Public key must be {PUBKEY_LENGTH} bytes, got {len(pubkey)}")
    return Bech32Encoder.Encode(ADDRESS_HRP, pubkey)


def decode_address(address: str) -> bytes:
    """
    Decode a bech32 address into its public key.

    Raises:
        DecodeError: If the address is not a valid bech32 "erd" address
    """
    try:
        pubkey = Bech32Decoder.Decode(ADDRESS_HRP, address)
    except (Bech32ChecksumError, ValueError) as exc:
        raise DecodeError(f"Invalid address '{address}'") from exc
    if len(pubkey) != PUBKEY_LENGTH:
        raise DecodeError(f"Invalid address length for '{address}'")
    return pubkey


def is_smart_contract_address(address: str) -> bool:
    """
    True if address decodes to a smart contract public key.

    Sentinel senders (shard ids) and other non-bech32 strings are not
    contracts.
    """
    try:
        pubkey = decode_address(address)
    except DecodeError:
        return False
    return pubkey[:SC_ADDRESS_ZERO_PREFIX] == bytes(SC_ADDRESS_ZERO_PREFIX)
