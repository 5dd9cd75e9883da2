"""
Cryptographic helpers for tacochild.

This module provides:
- Keccak-256 hashing (EVM conventions)
- Key generation on secp256k1
- Address derivation and EIP-55 checksum encoding

Design Notes:
-------------
The registry never signs or verifies anything itself; the host ledger
authenticates callers. Keys are only needed to derive realistic account
addresses for the relay, the coordinator, tests and the CLI demo.

Addresses are carried around as 0x-prefixed checksummed strings, which is
what off-chain tooling and indexers expect to see in notifications.
"""

import secrets
from dataclasses import dataclass

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order (number of points on the curve)
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

ADDRESS_SIZE = 20

ZERO_ADDRESS = "0x" + "00" * ADDRESS_SIZE


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: address derivation and checksum encoding.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Key Generation
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key (integer in [1, order-1])
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes  # 32 bytes
    public_key: bytes   # 64 bytes (uncompressed, no 0x04 prefix)

    @property
    def address(self) -> str:
        """Checksummed account address derived from the public key."""
        return address_from_public_key(self.public_key)


def generate_keypair() -> KeyPair:
    """
    Generate a new random keypair.

    Uses cryptographically secure random number generator.
    """
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")

    # Derive public key: P = k * G (scalar multiplication on curve)
    x, y = secp256k1.privtopub(private_key)
    public_key = x.to_bytes(32, byteorder="big") + y.to_bytes(32, byteorder="big")

    return KeyPair(private_key=private_key, public_key=public_key)


def generate_address() -> str:
    """Fresh random account address."""
    return generate_keypair().address


# =============================================================================
# Addresses
# =============================================================================


def address_from_public_key(public_key: bytes) -> str:
    """
    Derive address from public key.

    Address = last 20 bytes of keccak256(public_key), checksummed.
    """
    if len(public_key) != 64:
        raise ValueError("Public key must be 64 bytes")
    return to_checksum_address(keccak256(public_key)[-ADDRESS_SIZE:])


def to_checksum_address(address) -> str:
    """
    Encode an address with EIP-55 mixed-case checksum.

    Args:
        address: 20 raw bytes or a hex string (with or without 0x, any case)

    Returns:
        0x-prefixed checksummed address

    Raises:
        ValueError: if the input is not a 20-byte address
    """
    if isinstance(address, (bytes, bytearray)):
        if len(address) != ADDRESS_SIZE:
            raise ValueError(f"Address must be {ADDRESS_SIZE} bytes, got {len(address)}")
        hex_addr = bytes(address).hex()
    elif isinstance(address, str):
        hex_addr = address[2:] if address[:2] in ("0x", "0X") else address
        if len(hex_addr) != ADDRESS_SIZE * 2:
            raise ValueError(f"Invalid address length: {address!r}")
        try:
            bytes.fromhex(hex_addr)
        except ValueError:
            raise ValueError(f"Invalid hex in address: {address!r}") from None
        hex_addr = hex_addr.lower()
    else:
        raise ValueError(f"Address must be str or bytes, got {type(address).__name__}")

    digest = keccak256(hex_addr.encode("ascii")).hex()
    checksummed = "".join(
        ch.upper() if ch.isalpha() and int(digest[i], 16) >= 8 else ch
        for i, ch in enumerate(hex_addr)
    )
    return "0x" + checksummed


def is_zero_address(address: str) -> bool:
    """Check whether an address is the zero address (case-insensitive)."""
    return isinstance(address, str) and address.lower() == ZERO_ADDRESS


__all__ = [
    "SECP256K1_ORDER",
    "ADDRESS_SIZE",
    "ZERO_ADDRESS",
    "keccak256",
    "KeyPair",
    "generate_keypair",
    "generate_address",
    "address_from_public_key",
    "to_checksum_address",
    "is_zero_address",
]
