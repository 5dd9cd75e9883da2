"""
Input Validation - argument checks for registry entry points.

Every validator returns (is_valid, error_message) so callers can
reject an operation before touching any state.
"""

from typing import Any, Tuple

from tacochild.crypto import ADDRESS_SIZE, is_zero_address, to_checksum_address

# =============================================================================
# Constants
# =============================================================================

MAX_UINT96 = 2**96 - 1
MAX_UINT64 = 2**64 - 1
MAX_UINT32 = 2**32 - 1


# =============================================================================
# Validation Functions
# =============================================================================


def validate_address(address: Any, name: str = "address", allow_zero: bool = True) -> Tuple[bool, str]:
    """
    Validate an account address.

    Accepts 0x-prefixed hex strings in any case, or 20 raw bytes.

    Args:
        address: Value to validate
        name: Field name for error messages
        allow_zero: Whether the zero address is acceptable

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(address, (str, bytes, bytearray)):
        return False, f"{name} must be str, got {type(address).__name__}"

    if isinstance(address, str) and not address.startswith(("0x", "0X")):
        return False, f"{name} must be 0x-prefixed"

    try:
        normalized = to_checksum_address(address)
    except ValueError:
        return False, f"{name} must be a {ADDRESS_SIZE}-byte hex address"

    if not allow_zero and is_zero_address(normalized):
        return False, f"{name} must not be the zero address"

    return True, ""


def validate_integer(
    value: Any,
    name: str,
    min_val: int = 0,
    max_val: int = MAX_UINT96,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass; never a valid amount
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a uint96 token amount."""
    return validate_integer(amount, name, 0, MAX_UINT96)


def validate_timestamp(timestamp: Any, name: str = "timestamp") -> Tuple[bool, str]:
    """Validate a uint64 timestamp."""
    return validate_integer(timestamp, name, 0, MAX_UINT64)


__all__ = [
    "validate_address",
    "validate_integer",
    "validate_amount",
    "validate_timestamp",
    "MAX_UINT96",
    "MAX_UINT64",
    "MAX_UINT32",
]
