"""
Registry notifications.

Each committed state transition emits one of three records, which
off-chain observers and indexers consume:

- OperatorUpdated(staking_provider, operator)
- AuthorizationUpdated(staking_provider, authorized, deauthorizing, end_deauthorization)
- OperatorConfirmed(staking_provider, operator)

Events raised inside an operation are buffered and only published once
the operation commits. A rejected operation publishes nothing.
"""

from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, List, Optional, Type

from tacochild.utils.logger import get_logger

logger = get_logger("events")


# =============================================================================
# Event Records
# =============================================================================


@dataclass(frozen=True)
class RegistryEvent:
    """Base record; `name` identifies the notification type."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"event": self.name, **asdict(self)}


@dataclass(frozen=True)
class OperatorUpdated(RegistryEvent):
    staking_provider: str
    operator: str


@dataclass(frozen=True)
class AuthorizationUpdated(RegistryEvent):
    staking_provider: str
    authorized: int
    deauthorizing: int
    end_deauthorization: int


@dataclass(frozen=True)
class OperatorConfirmed(RegistryEvent):
    staking_provider: str
    operator: str


EVENT_TYPES: Dict[str, Type[RegistryEvent]] = {
    cls.__name__: cls for cls in (OperatorUpdated, AuthorizationUpdated, OperatorConfirmed)
}


def event_from_dict(data: dict) -> RegistryEvent:
    """Rebuild an event from its `to_dict()` form."""
    payload = dict(data)
    name = payload.pop("event")
    cls = EVENT_TYPES.get(name)
    if cls is None:
        raise ValueError(f"Unknown event type: {name}")
    return cls(**payload)


# =============================================================================
# Event Log
# =============================================================================


Subscriber = Callable[[RegistryEvent], None]


@dataclass
class EventLog:
    """
    Ordered log of committed notifications.

    Attributes:
        events: Committed events, oldest first
        pending: Events emitted by the operation currently in flight
    """
    events: List[RegistryEvent] = field(default_factory=list)
    pending: List[RegistryEvent] = field(default_factory=list)
    _subscribers: List[Subscriber] = field(default_factory=list, repr=False)

    def subscribe(self, callback: Subscriber) -> None:
        """Register a callback invoked for every committed event."""
        self._subscribers.append(callback)

    def emit(self, event: RegistryEvent) -> None:
        """Buffer an event until the current operation commits."""
        self.pending.append(event)

    def commit(self) -> List[RegistryEvent]:
        """Publish buffered events. Returns the published batch."""
        batch, self.pending = self.pending, []
        self.events.extend(batch)
        for event in batch:
            logger.debug(f"{event.name}: {event.to_dict()}")
            for callback in self._subscribers:
                callback(event)
        return batch

    def discard(self) -> None:
        """Drop buffered events of a rejected operation."""
        self.pending = []

    def filter(self, event_type: Optional[Type[RegistryEvent]] = None,
               staking_provider: Optional[str] = None) -> List[RegistryEvent]:
        """Committed events, optionally narrowed by type and provider."""
        return [
            e for e in self.events
            if (event_type is None or isinstance(e, event_type))
            and (staking_provider is None or e.staking_provider == staking_provider)
        ]

    def __len__(self) -> int:
        return len(self.events)


__all__ = [
    "RegistryEvent",
    "OperatorUpdated",
    "AuthorizationUpdated",
    "OperatorConfirmed",
    "EVENT_TYPES",
    "event_from_dict",
    "EventLog",
]
