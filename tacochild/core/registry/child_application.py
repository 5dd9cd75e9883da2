"""
TACo Child Application - staking authorization registry.

This module provides:
- Mirroring of authorization updates pushed by the root application
- Operator binding with a reverse operator -> provider index
- Operator confirmation by the coordinator, forwarded back to the root
- Eligibility and paginated enumeration of active staking providers

Execution model:
---------------
Operations run one at a time. Each state-changing operation snapshots the
registry state, runs, and then either commits (state kept, notifications
published, storage updated) or fails and restores the snapshot. A failure
reported by a collaborator called mid-operation fails the whole operation.
"""

import copy
import time
from typing import Callable, Dict, List, Optional, Tuple

from tacochild.core.events import (
    AuthorizationUpdated,
    EventLog,
    OperatorConfirmed,
    OperatorUpdated,
    event_from_dict,
)
from tacochild.core.registry.state import (
    ActiveStakingProvider,
    RegistryState,
    StakingProviderInfo,
)
from tacochild.core.storage.storage_manager import StorageManager
from tacochild.crypto import ZERO_ADDRESS, generate_address, to_checksum_address
from tacochild.utils.logger import get_logger
from tacochild.utils.validation import (
    MAX_UINT32,
    validate_address,
    validate_amount,
    validate_integer,
    validate_timestamp,
)

logger = get_logger("registry")


class Revert(Exception):
    """Raised inside an operation to reject it; never escapes the registry."""


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise Revert(message)


def _normalize(address, name: str) -> str:
    valid, err = validate_address(address, name)
    _require(valid, err)
    return to_checksum_address(address)


# =============================================================================
# TACo Child Application
# =============================================================================


class TACoChildApplication:
    """
    Registry of staking providers on the child chain.

    Write access is split between two authorities: the root application
    (authorization and operator updates) and the coordinator (operator
    confirmations). Reads are open to anyone.
    """

    def __init__(
        self,
        root_application,
        minimum_authorization: int,
        address: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
        storage_manager: Optional[StorageManager] = None,
    ):
        """
        Initialize the registry.

        Args:
            root_application: Collaborator exposing `address` and
                `confirm_operator_address(caller, operator)`
            minimum_authorization: Smallest authorization that counts (> 0)
            address: This registry's own address; random if omitted
            clock: Returns the current timestamp; defaults to wall clock
            storage_manager: Persistence manager. None = in-memory only.
        """
        if root_application is None:
            raise ValueError("Address for root application must be specified")
        valid, err = validate_address(
            getattr(root_application, "address", None), "root_application", allow_zero=False
        )
        if not valid:
            raise ValueError(f"Address for root application must be specified: {err}")
        valid, err = validate_amount(minimum_authorization, "minimum_authorization")
        if not valid or minimum_authorization == 0:
            raise ValueError(f"Minimum authorization must be specified {err}".strip())

        self.root_application = root_application
        self.root_application_address = to_checksum_address(root_application.address)
        self.minimum_authorization = minimum_authorization
        self.address = to_checksum_address(address) if address else generate_address()
        self.clock = clock or (lambda: int(time.time()))

        self.state = RegistryState()
        self.event_log = EventLog()

        self.storage_manager = storage_manager
        if storage_manager:
            self._load_from_storage()

        logger.info(
            f"TACoChildApplication {self.address} initialized "
            f"(root={self.root_application_address}, minimum={minimum_authorization})"
        )

    # =========================================================================
    # Operation Boundary
    # =========================================================================

    def execute(self, operation: str, handler: Callable, *args) -> Tuple[bool, str]:
        """
        Run `handler(*args)` as one atomic operation.

        The whole state is deep-copied before the handler runs and diffed
        against the result before persisting, so each operation costs
        O(number of providers). Only changed rows reach storage.

        Returns:
            (success, error_message)
        """
        snapshot = copy.deepcopy(self.state)
        try:
            handler(*args)
            self._persist_changes(snapshot)
        except Revert as e:
            self._rollback(snapshot)
            logger.warning(f"{operation} rejected: {e}")
            return False, str(e)
        except Exception:
            self._rollback(snapshot)
            logger.exception(f"{operation} failed, state restored")
            raise

        self.event_log.commit()
        return True, ""

    def _rollback(self, snapshot: RegistryState) -> None:
        self.state = snapshot
        self.event_log.discard()

    @property
    def now(self) -> int:
        return self.clock()

    # =========================================================================
    # Initialization
    # =========================================================================

    def initialize(self, coordinator) -> Tuple[bool, str]:
        """
        Bind the coordinator. Allowed exactly once.

        Args:
            coordinator: Collaborator exposing `address` and `application`
                (the registry address it believes it serves)

        Returns:
            (success, error_message)
        """
        return self.execute("initialize", self._initialize, coordinator)

    def _initialize(self, coordinator) -> None:
        _require(self.state.coordinator == ZERO_ADDRESS, "Coordinator already set")
        address = getattr(coordinator, "address", None)
        _require(address is not None, "Coordinator must be specified")
        address = _normalize(address, "coordinator")
        _require(address != ZERO_ADDRESS, "Coordinator must be specified")

        application = getattr(coordinator, "application", None)
        valid, _ = validate_address(application, "application")
        _require(valid and to_checksum_address(application) == self.address, "Invalid coordinator")

        self.state.coordinator = address
        logger.info(f"Coordinator set to {address}")

    @property
    def coordinator(self) -> str:
        return self.state.coordinator

    # =========================================================================
    # Root Application Entry Points
    # =========================================================================

    def update_operator(self, caller: str, staking_provider: str, operator: str) -> Tuple[bool, str]:
        """
        Mirror an operator binding from the root application.

        Args:
            caller: Sender; must be the root application
            staking_provider: Provider being updated
            operator: New operator (zero to unbind)

        Returns:
            (success, error_message)
        """
        return self.execute("update_operator", self._guarded_update_operator,
                            caller, staking_provider, operator)

    def update_authorization(
        self,
        caller: str,
        staking_provider: str,
        authorized: int,
        deauthorizing: int = 0,
        end_deauthorization: int = 0,
    ) -> Tuple[bool, str]:
        """
        Mirror an authorization change from the root application.

        Called with only `authorized` this is the legacy form, which
        clears any pending deauthorization.

        Returns:
            (success, error_message)
        """
        return self.execute("update_authorization", self._guarded_update_authorization,
                            caller, staking_provider, authorized, deauthorizing, end_deauthorization)

    def _only_root_application(self, caller: str) -> None:
        caller = _normalize(caller, "caller")
        _require(caller == self.root_application_address, "Only root application allowed")

    def _guarded_update_operator(self, caller, staking_provider, operator) -> None:
        self._only_root_application(caller)
        self._update_operator(staking_provider, operator)

    def _guarded_update_authorization(self, caller, staking_provider, authorized,
                                      deauthorizing, end_deauthorization) -> None:
        self._only_root_application(caller)
        self._update_authorization(staking_provider, authorized, deauthorizing, end_deauthorization)

    def _update_operator(self, staking_provider: str, operator: str) -> None:
        staking_provider = _normalize(staking_provider, "staking_provider")
        operator = _normalize(operator, "operator")

        info = self.state.staking_provider_info.get(staking_provider, StakingProviderInfo())
        old_operator = info.operator
        if staking_provider == ZERO_ADDRESS or operator == old_operator:
            logger.debug(f"Operator update for {staking_provider} is a no-op")
            return

        self.state.staking_provider_info[staking_provider] = info
        if info.index == 0:
            self.state.staking_providers.append(staking_provider)
            info.index = len(self.state.staking_providers)

        info.operator = operator
        # Only drop the reverse entry if it still points at this provider
        if self.state.operator_to_staking_provider.get(old_operator) == staking_provider:
            del self.state.operator_to_staking_provider[old_operator]
        if operator != ZERO_ADDRESS:
            self.state.operator_to_staking_provider[operator] = staking_provider
        info.operator_confirmed = False

        self.event_log.emit(OperatorUpdated(staking_provider=staking_provider, operator=operator))
        logger.info(f"Operator of {staking_provider} set to {operator}")

    def _update_authorization(self, staking_provider: str, authorized: int,
                              deauthorizing: int, end_deauthorization: int) -> None:
        staking_provider = _normalize(staking_provider, "staking_provider")
        for value, name in ((authorized, "authorized"), (deauthorizing, "deauthorizing")):
            valid, err = validate_amount(value, name)
            _require(valid, err)
        valid, err = validate_timestamp(end_deauthorization, "end_deauthorization")
        _require(valid, err)
        _require(deauthorizing <= authorized, "Deauthorizing amount exceeds authorization")

        if staking_provider == ZERO_ADDRESS:
            return

        info = self.state.staking_provider_info.get(staking_provider, StakingProviderInfo())
        if (
            info.authorized == authorized
            and info.deauthorizing == deauthorizing
            and info.end_deauthorization == end_deauthorization
        ):
            logger.debug(f"Authorization update for {staking_provider} is a no-op")
            return

        info.authorized = authorized
        info.deauthorizing = deauthorizing
        info.end_deauthorization = end_deauthorization
        self.state.staking_provider_info[staking_provider] = info

        self.event_log.emit(AuthorizationUpdated(
            staking_provider=staking_provider,
            authorized=authorized,
            deauthorizing=deauthorizing,
            end_deauthorization=end_deauthorization,
        ))
        logger.info(
            f"Authorization of {staking_provider}: authorized={authorized}, "
            f"deauthorizing={deauthorizing}, end={end_deauthorization}"
        )

    # =========================================================================
    # Coordinator Entry Point
    # =========================================================================

    def confirm_operator_address(self, caller: str, operator: str) -> Tuple[bool, str]:
        """
        Confirm the operator bound to a provider and notify the root application.

        Args:
            caller: Sender; must be the coordinator
            operator: Operator address to confirm

        Returns:
            (success, error_message)
        """
        return self.execute("confirm_operator_address", self._confirm_operator_address,
                            caller, operator)

    def _confirm_operator_address(self, caller: str, operator: str) -> None:
        caller = _normalize(caller, "caller")
        _require(
            self.state.coordinator != ZERO_ADDRESS and caller == self.state.coordinator,
            "Only Coordinator allowed to confirm operator",
        )
        operator = _normalize(operator, "operator")

        staking_provider = self.state.operator_to_staking_provider.get(operator, ZERO_ADDRESS)
        info = self.state.staking_provider_info.get(staking_provider, StakingProviderInfo())
        _require(info.authorized >= self.minimum_authorization,
                 "Authorization must be greater than minimum")
        _require(not info.operator_confirmed, "Can't confirm same operator twice")

        info.operator_confirmed = True
        self.event_log.emit(OperatorConfirmed(staking_provider=staking_provider, operator=operator))

        success, err = self.root_application.confirm_operator_address(self.address, operator)
        _require(success, f"Root application rejected confirmation: {err}")

        logger.info(f"Operator {operator} confirmed for {staking_provider}")

    # =========================================================================
    # Views
    # =========================================================================

    def get_staking_provider_info(self, staking_provider: str) -> StakingProviderInfo:
        """Copy of a provider's record (empty record if unknown)."""
        staking_provider = to_checksum_address(staking_provider)
        info = self.state.staking_provider_info.get(staking_provider)
        return copy.copy(info) if info else StakingProviderInfo()

    def authorized_stake(self, staking_provider: str) -> int:
        """Currently authorized amount, ignoring any pending deauthorization."""
        return self.get_staking_provider_info(staking_provider).authorized

    def eligible_stake(self, staking_provider: str, end_date: int) -> int:
        """
        Stake a provider can back duties with for a window ending at `end_date`.

        A pending deauthorization is subtracted only when it completes
        strictly before `end_date`.
        """
        valid, err = validate_integer(end_date, "end_date", 0, 2**256 - 1)
        if not valid:
            raise ValueError(err)
        return self.get_staking_provider_info(staking_provider).eligible_stake(end_date)

    def staking_provider_from_operator(self, operator: str) -> str:
        """Provider bound to `operator`, or the zero address."""
        operator = to_checksum_address(operator)
        return self.state.operator_to_staking_provider.get(operator, ZERO_ADDRESS)

    def operator_of(self, staking_provider: str) -> str:
        return self.get_staking_provider_info(staking_provider).operator

    def is_operator_confirmed(self, operator: str) -> bool:
        staking_provider = self.staking_provider_from_operator(operator)
        if staking_provider == ZERO_ADDRESS:
            return False
        return self.get_staking_provider_info(staking_provider).operator_confirmed

    def get_staking_providers_length(self) -> int:
        return len(self.state.staking_providers)

    @property
    def staking_providers(self) -> List[str]:
        return list(self.state.staking_providers)

    def get_active_staking_providers(
        self,
        start_index: int,
        max_staking_providers: int = 0,
        cohort_duration: int = 0,
    ) -> Tuple[int, List[ActiveStakingProvider]]:
        """
        Page through providers that can currently participate.

        A provider is active when its operator is confirmed and its eligible
        stake is at least the minimum authorization.

        Args:
            start_index: First enumeration position to scan (0-based)
            max_staking_providers: Positions to scan; 0 scans to the end
            cohort_duration: Seconds the cohort must stay backed; 0 means no
                horizon, so pending deauthorizations are ignored

        Returns:
            (total eligible stake, active providers in enumeration order)

        Raises:
            IndexError: start_index is not a valid position
        """
        valid, err = validate_integer(max_staking_providers, "max_staking_providers", 0, 2**256 - 1)
        if not valid:
            raise ValueError(err)
        valid, err = validate_integer(cohort_duration, "cohort_duration", 0, MAX_UINT32)
        if not valid:
            raise ValueError(err)

        end_index = len(self.state.staking_providers)
        if isinstance(start_index, bool) or not isinstance(start_index, int) \
                or not 0 <= start_index < end_index:
            raise IndexError(f"Wrong start index {start_index} (providers: {end_index})")
        if max_staking_providers != 0 and start_index + max_staking_providers < end_index:
            end_index = start_index + max_staking_providers

        end_date = 0 if cohort_duration == 0 else self.now + cohort_duration

        total = 0
        active: List[ActiveStakingProvider] = []
        for staking_provider in self.state.staking_providers[start_index:end_index]:
            info = self.state.staking_provider_info[staking_provider]
            eligible = info.eligible_stake(end_date)
            if eligible < self.minimum_authorization or not info.operator_confirmed:
                continue
            active.append(ActiveStakingProvider(staking_provider=staking_provider, amount=eligible))
            total += eligible

        logger.debug(
            f"Active providers [{start_index}:{end_index}] -> {len(active)} entries, total={total}"
        )
        return total, active

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_from_storage(self) -> None:
        """
        Load state from storage manager.

        Raises:
            ValueError: stored minimum authorization or root application
                differs from the constructor arguments
        """
        minimum, root = self.storage_manager.get_registry_params()
        if minimum is None:
            self.storage_manager.save_registry_params(
                self.minimum_authorization, self.root_application_address
            )
        elif minimum != self.minimum_authorization or root != self.root_application_address:
            raise ValueError(
                f"Stored registry was created with minimum_authorization={minimum}, "
                f"root_application={root}; got {self.minimum_authorization}, "
                f"{self.root_application_address}"
            )

        providers, operators, coordinator, events = self.storage_manager.load_registry_state()

        for row in providers:
            staking_provider, info = StakingProviderInfo.from_row(row)
            self.state.staking_provider_info[staking_provider] = info
        enumerated = sorted(
            (info.index, p) for p, info in self.state.staking_provider_info.items() if info.index
        )
        self.state.staking_providers = [p for _, p in enumerated]
        self.state.operator_to_staking_provider = dict(operators)
        if coordinator:
            self.state.coordinator = coordinator
        self.event_log.events = [event_from_dict(e) for e in events]

        logger.info(
            f"Loaded registry: {len(self.state.staking_provider_info)} providers, "
            f"{len(self.event_log)} events"
        )

    def _persist_changes(self, snapshot: RegistryState) -> None:
        """Write the difference between `snapshot` and current state."""
        if not self.storage_manager:
            return

        changed_providers = [
            info.to_row(p)
            for p, info in self.state.staking_provider_info.items()
            if snapshot.staking_provider_info.get(p) != info
        ]
        current_ops = self.state.operator_to_staking_provider
        old_ops = snapshot.operator_to_staking_provider
        set_operators = [(o, p) for o, p in current_ops.items() if old_ops.get(o) != p]
        removed_operators = [o for o in old_ops if o not in current_ops]
        coordinator = (
            self.state.coordinator if self.state.coordinator != snapshot.coordinator else None
        )
        events = [e.to_dict() for e in self.event_log.pending]

        if not (changed_providers or set_operators or removed_operators or coordinator or events):
            return

        self.storage_manager.persist_registry_update(
            changed_providers, set_operators, removed_operators, coordinator, events
        )

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return (
            f"TACoChildApplication(address={self.address}, "
            f"providers={len(self.state.staking_providers)}, coordinator={self.state.coordinator})"
        )

    def stats(self) -> Dict:
        """Get registry statistics."""
        infos = self.state.staking_provider_info.values()
        return {
            "address": self.address,
            "root_application": self.root_application_address,
            "coordinator": self.state.coordinator,
            "minimum_authorization": self.minimum_authorization,
            "staking_providers": len(self.state.staking_providers),
            "confirmed_operators": sum(1 for i in infos if i.operator_confirmed),
            "total_authorized": sum(i.authorized for i in infos),
            "pending_deauthorization": sum(i.deauthorizing for i in infos if i.end_deauthorization),
            "events": len(self.event_log),
        }


__all__ = [
    "TACoChildApplication",
    "Revert",
]
