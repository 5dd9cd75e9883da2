"""
Registry state records.

The registry keeps all of its mutable state in one RegistryState value so
an operation can be snapshotted before it runs and restored if it fails.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from tacochild.crypto import ZERO_ADDRESS


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class StakingProviderInfo:
    """
    Authorization record for one staking provider.

    Attributes:
        operator: Bound operator address (zero = unbound)
        authorized: Currently authorized stake (uint96)
        operator_confirmed: Whether the coordinator confirmed the bound operator
        index: 1-based position in the enumeration list (0 = not enumerated)
        deauthorizing: Amount pending removal from `authorized` (uint96)
        end_deauthorization: Timestamp after which `deauthorizing` stops
            counting towards eligibility (0 = nothing pending)
    """
    operator: str = ZERO_ADDRESS
    authorized: int = 0
    operator_confirmed: bool = False
    index: int = 0
    deauthorizing: int = 0
    end_deauthorization: int = 0

    def eligible_stake(self, end_date: int) -> int:
        """Stake still backing duties for a window ending at `end_date`."""
        if self.end_deauthorization == 0 or end_date <= self.end_deauthorization:
            return self.authorized
        return self.authorized - self.deauthorizing

    def to_row(self, staking_provider: str) -> Tuple:
        """
        Storage row. Amounts and timestamps are decimal text because
        uint96 does not fit a SQLite INTEGER.
        """
        return (
            staking_provider,
            self.operator,
            str(self.authorized),
            int(self.operator_confirmed),
            self.index,
            str(self.deauthorizing),
            str(self.end_deauthorization),
        )

    @classmethod
    def from_row(cls, row) -> Tuple[str, "StakingProviderInfo"]:
        """Inverse of `to_row`; returns (staking_provider, info)."""
        staking_provider, operator, authorized, confirmed, index, deauthorizing, end = row
        return staking_provider, cls(
            operator=operator,
            authorized=int(authorized),
            operator_confirmed=bool(confirmed),
            index=int(index),
            deauthorizing=int(deauthorizing),
            end_deauthorization=int(end),
        )


@dataclass(frozen=True)
class ActiveStakingProvider:
    """One entry of an active-provider page: address and eligible amount."""
    staking_provider: str
    amount: int


@dataclass
class RegistryState:
    """
    Complete mutable state of a registry.

    Attributes:
        staking_provider_info: Provider address -> StakingProviderInfo
        staking_providers: Append-only enumeration list
        operator_to_staking_provider: Operator address -> provider address
        coordinator: Confirming authority, set once (zero until initialized)
    """
    staking_provider_info: Dict[str, StakingProviderInfo] = field(default_factory=dict)
    staking_providers: List[str] = field(default_factory=list)
    operator_to_staking_provider: Dict[str, str] = field(default_factory=dict)
    coordinator: str = ZERO_ADDRESS


__all__ = [
    "StakingProviderInfo",
    "ActiveStakingProvider",
    "RegistryState",
]
