from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tacochild.core.storage.sqlite_adapter import SQLiteAdapter
from tacochild.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for a registry.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Staking provider records and operator bindings
    - Registry metadata (coordinator)
    - Committed notifications
    """

    def __init__(self, data_dir: Path, db_name: str = "registry.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    # =========================================================================
    # Metadata
    # =========================================================================

    def get_coordinator(self) -> Optional[str]:
        return self.adapter.get_chain_meta("coordinator")

    def get_registry_params(self) -> Tuple[Optional[int], Optional[str]]:
        """(minimum_authorization, root_application) fixed at first construction."""
        minimum = self.adapter.get_chain_meta("minimum_authorization")
        root = self.adapter.get_chain_meta("root_application")
        return (int(minimum) if minimum is not None else None), root

    def save_registry_params(self, minimum_authorization: int, root_application: str) -> None:
        self.adapter.set_chain_meta("minimum_authorization", str(minimum_authorization))
        self.adapter.set_chain_meta("root_application", root_application)

    # =========================================================================
    # Registry State
    # =========================================================================

    def load_registry_state(self) -> Tuple[List[Tuple], List[Tuple[str, str]], Optional[str], List[Dict[str, Any]]]:
        """
        Load full registry state.

        Returns:
            (providers, operators, coordinator, events)
            providers: List of provider rows, by enumeration index
            operators: List[(operator, staking_provider)]
            coordinator: Coordinator address or None
            events: Event dicts, oldest first
        """
        providers = self.adapter.get_all_providers()
        operators = self.adapter.get_all_operators()
        coordinator = self.get_coordinator()
        events = self.adapter.get_events()
        return providers, operators, coordinator, events

    def persist_registry_update(
        self,
        providers: List[Tuple],
        set_operators: List[Tuple[str, str]],
        removed_operators: List[str],
        coordinator: Optional[str],
        events: List[Dict[str, Any]],
    ):
        """Atomically persist the effects of one operation."""
        self.adapter.persist_registry_update(
            providers, set_operators, removed_operators, coordinator, events
        )
        logger.debug(
            f"Persisted {len(providers)} providers, {len(set_operators)}+/{len(removed_operators)}- "
            f"operators, {len(events)} events"
        )

    def get_events(self, staking_provider: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.adapter.get_events(staking_provider)

    def close(self) -> None:
        self.adapter.close()
