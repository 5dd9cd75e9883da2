"""
Staking Authorization Registry Module.

Tracks staking-provider authorization, operator bindings and
confirmations, and enumerates active providers.
"""

from tacochild.core.registry.state import (
    StakingProviderInfo,
    ActiveStakingProvider,
    RegistryState,
)
from tacochild.core.registry.child_application import (
    TACoChildApplication,
    Revert,
)
from tacochild.core.registry.force_update import ForceUpdateGate

__all__ = [
    "StakingProviderInfo",
    "ActiveStakingProvider",
    "RegistryState",
    "TACoChildApplication",
    "Revert",
    "ForceUpdateGate",
]
