"""
Unit tests for cryptographic helpers.

Tests cover:
1. Key generation
2. Keccak-256
3. Address derivation and EIP-55 checksums
"""

import pytest

from tacochild.crypto import (
    ZERO_ADDRESS,
    address_from_public_key,
    generate_address,
    generate_keypair,
    is_zero_address,
    keccak256,
    to_checksum_address,
)


class TestKeyGeneration:
    """Tests for key generation."""

    def test_keypair_lengths(self):
        kp = generate_keypair()
        assert len(kp.private_key) == 32
        assert len(kp.public_key) == 64

    def test_keypair_address_is_checksummed(self):
        kp = generate_keypair()
        assert kp.address.startswith("0x")
        assert len(kp.address) == 42
        assert to_checksum_address(kp.address) == kp.address

    def test_addresses_unique(self):
        assert generate_address() != generate_address()

    def test_public_key_length_checked(self):
        with pytest.raises(ValueError):
            address_from_public_key(b"\x00" * 33)


class TestKeccak:
    """Tests for Keccak-256."""

    def test_empty_input(self):
        # Known Keccak-256 digest of the empty string
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )


class TestChecksum:
    """Tests for EIP-55 encoding."""

    @pytest.mark.parametrize("address", [
        "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
        "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359",
        "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB",
        "0xD1220A0cf47c7B9Be7A2E6BA89F429762e7b9aDb",
    ])
    def test_reference_vectors(self, address):
        assert to_checksum_address(address.lower()) == address
        assert to_checksum_address(address) == address

    def test_bytes_input(self):
        raw = bytes(range(20))
        assert to_checksum_address(raw).lower() == "0x" + raw.hex()

    def test_wrong_case_is_not_checksum(self):
        lowered = "0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed"
        assert to_checksum_address(lowered) != lowered

    @pytest.mark.parametrize("bad", ["0x1234", "0x" + "zz" * 20, 42, b"\x00" * 19])
    def test_invalid_inputs(self, bad):
        with pytest.raises(ValueError):
            to_checksum_address(bad)

    def test_zero_address(self):
        assert is_zero_address(ZERO_ADDRESS)
        assert to_checksum_address(ZERO_ADDRESS) == ZERO_ADDRESS
        assert not is_zero_address(generate_address())
