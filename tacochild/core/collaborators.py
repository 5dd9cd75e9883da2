"""
Registry collaborators: the root application relay and the coordinator.

RootApplicationRelay stands in for the root-chain staking application
on the far side of a cross-chain bridge. It is the only writer of
authorization and operator updates, and it receives confirmations back
from the child registry.

Coordinator is the local authority that confirms operators. Its
`application` attribute names the registry it serves, which the
registry checks during `initialize`.
"""

from typing import List, Optional, Tuple

from tacochild.core.events import OperatorConfirmed
from tacochild.crypto import generate_address, to_checksum_address
from tacochild.utils.logger import get_logger

logger = get_logger("collaborators")


class RootApplicationRelay:
    """
    Root-chain side of the relay.

    Attributes:
        address: Relay address the child registry trusts
        child: Bound child registry (set by `bind`)
        confirmed_operators: Operators confirmed back from the child, in order.
            Recorded when the child commits the confirmation.
        accept_confirmations: When False, confirmations are refused
    """

    def __init__(self, address: Optional[str] = None):
        self.address = to_checksum_address(address) if address else generate_address()
        self.child = None
        self.confirmed_operators: List[str] = []
        self.accept_confirmations = True

    def bind(self, child) -> None:
        """Attach the child registry this relay feeds."""
        self.child = child
        child.event_log.subscribe(self._on_child_event)
        logger.debug(f"Relay {self.address} bound to child {child.address}")

    def _require_child(self):
        if self.child is None:
            raise RuntimeError("Relay is not bound to a child application")
        return self.child

    # =========================================================================
    # Outbound (root -> child)
    # =========================================================================

    def push_operator(self, staking_provider: str, operator: str) -> Tuple[bool, str]:
        """Relay an operator binding to the child."""
        return self._require_child().update_operator(self.address, staking_provider, operator)

    def push_authorization(
        self,
        staking_provider: str,
        authorized: int,
        deauthorizing: int = 0,
        end_deauthorization: int = 0,
    ) -> Tuple[bool, str]:
        """Relay an authorization change to the child."""
        return self._require_child().update_authorization(
            self.address, staking_provider, authorized, deauthorizing, end_deauthorization
        )

    # =========================================================================
    # Inbound (child -> root)
    # =========================================================================

    def confirm_operator_address(self, caller: str, operator: str) -> Tuple[bool, str]:
        """
        Receive an operator confirmation from the child.

        Returns:
            (success, error_message)
        """
        child = self._require_child()
        if to_checksum_address(caller) != child.address:
            return False, "Caller must be child application"
        if not self.accept_confirmations:
            return False, "Confirmations are not accepted"

        return True, ""

    def _on_child_event(self, event) -> None:
        if isinstance(event, OperatorConfirmed):
            self.confirmed_operators.append(event.operator)
            logger.info(f"Root application recorded confirmation of {event.operator}")


class Coordinator:
    """
    Authority that confirms operators on the child registry.

    Attributes:
        address: Coordinator address
        application: Address of the registry this coordinator serves
    """

    def __init__(self, application: str, address: Optional[str] = None):
        self.address = to_checksum_address(address) if address else generate_address()
        self.application = to_checksum_address(application)
        self.registry = None

    def attach(self, registry) -> Tuple[bool, str]:
        """Initialize `registry` with this coordinator and keep a handle to it."""
        success, err = registry.initialize(self)
        if success:
            self.registry = registry
        return success, err

    def confirm_operator(self, operator: str) -> Tuple[bool, str]:
        """Confirm `operator` on the attached registry."""
        if self.registry is None:
            raise RuntimeError("Coordinator is not attached to a registry")
        return self.registry.confirm_operator_address(self.address, operator)


def deploy_child_application(
    minimum_authorization: int,
    clock=None,
    storage_manager=None,
    registry_address: Optional[str] = None,
    root_address: Optional[str] = None,
    coordinator_address: Optional[str] = None,
) -> Tuple["TACoChildApplication", RootApplicationRelay, Coordinator]:
    """
    Wire a registry with its relay and coordinator.

    A persisted registry that already has a coordinator is not
    re-initialized; the returned coordinator is attached directly and must
    match the stored address.

    Returns:
        (registry, relay, coordinator)
    """
    from tacochild.core.registry import TACoChildApplication

    relay = RootApplicationRelay(root_address)
    registry = TACoChildApplication(
        root_application=relay,
        minimum_authorization=minimum_authorization,
        address=registry_address,
        clock=clock,
        storage_manager=storage_manager,
    )
    relay.bind(registry)

    coordinator = Coordinator(application=registry.address, address=coordinator_address)
    if registry.coordinator == coordinator.address:
        coordinator.registry = registry
    else:
        success, err = coordinator.attach(registry)
        if not success:
            raise RuntimeError(f"Coordinator initialization failed: {err}")

    return registry, relay, coordinator


__all__ = [
    "RootApplicationRelay",
    "Coordinator",
    "deploy_child_application",
]
