"""
Force-update entry point for non-production registries.

A ForceUpdateGate wraps a registry and lets a managed set of updater
addresses push operator and authorization changes directly, without
going through the root application. The gate owner grants and revokes
the updater capability.
"""

from typing import Set, Tuple

from tacochild.core.registry.child_application import TACoChildApplication, _require
from tacochild.crypto import to_checksum_address
from tacochild.utils.logger import get_logger
from tacochild.utils.validation import validate_address

logger = get_logger("registry.force")


class ForceUpdateGate:
    """
    Capability-gated alternate writer for a TACoChildApplication.

    Attributes:
        registry: The wrapped registry
        owner: Address allowed to manage updaters
        updaters: Addresses allowed to force updates
    """

    def __init__(self, registry: TACoChildApplication, owner: str):
        valid, err = validate_address(owner, "owner", allow_zero=False)
        if not valid:
            raise ValueError(err)
        self.registry = registry
        self.owner = to_checksum_address(owner)
        self.updaters: Set[str] = set()

    # =========================================================================
    # Updater Management
    # =========================================================================

    def grant_updater(self, caller: str, updater: str) -> Tuple[bool, str]:
        """Give `updater` the force-update capability. Owner only."""
        ok, err = self._check_owner(caller, updater)
        if not ok:
            return False, err
        updater = to_checksum_address(updater)
        if updater not in self.updaters:
            self.updaters.add(updater)
            logger.info(f"Granted updater role to {updater}")
        return True, ""

    def revoke_updater(self, caller: str, updater: str) -> Tuple[bool, str]:
        """Withdraw the force-update capability. Owner only."""
        ok, err = self._check_owner(caller, updater)
        if not ok:
            return False, err
        updater = to_checksum_address(updater)
        if updater in self.updaters:
            self.updaters.discard(updater)
            logger.info(f"Revoked updater role from {updater}")
        return True, ""

    def is_updater(self, account: str) -> bool:
        valid, _ = validate_address(account)
        return valid and to_checksum_address(account) in self.updaters

    def _check_owner(self, caller: str, updater: str) -> Tuple[bool, str]:
        for value, name in ((caller, "caller"), (updater, "updater")):
            valid, err = validate_address(value, name, allow_zero=False)
            if not valid:
                return False, err
        if to_checksum_address(caller) != self.owner:
            logger.warning(f"Updater management by non-owner {caller} rejected")
            return False, "Caller is not the owner"
        return True, ""

    # =========================================================================
    # Force Updates
    # =========================================================================

    def force_update_operator(self, caller: str, staking_provider: str, operator: str) -> Tuple[bool, str]:
        """Bind an operator as if the root application had sent it."""
        return self.registry.execute(
            "force_update_operator", self._force_update_operator, caller, staking_provider, operator
        )

    def force_update_authorization(
        self,
        caller: str,
        staking_provider: str,
        authorized: int,
        deauthorizing: int = 0,
        end_deauthorization: int = 0,
    ) -> Tuple[bool, str]:
        """Set authorization as if the root application had sent it."""
        return self.registry.execute(
            "force_update_authorization", self._force_update_authorization,
            caller, staking_provider, authorized, deauthorizing, end_deauthorization,
        )

    def _only_updater(self, caller: str) -> None:
        _require(self.is_updater(caller), "Caller is not an updater")

    def _force_update_operator(self, caller, staking_provider, operator) -> None:
        self._only_updater(caller)
        self.registry._update_operator(staking_provider, operator)

    def _force_update_authorization(self, caller, staking_provider, authorized,
                                    deauthorizing, end_deauthorization) -> None:
        self._only_updater(caller)
        self.registry._update_authorization(
            staking_provider, authorized, deauthorizing, end_deauthorization
        )


__all__ = ["ForceUpdateGate"]
