"""
Unit tests for registry storage.
"""

import pytest

from tacochild.crypto import ZERO_ADDRESS, generate_address
from tacochild.core.registry import StakingProviderInfo
from tacochild.core.storage import SQLiteAdapter, StorageManager


@pytest.fixture
def storage(tmp_path):
    manager = StorageManager(data_dir=tmp_path)
    yield manager
    manager.close()


class TestStorageManager:

    def test_empty_state(self, storage):
        providers, operators, coordinator, events = storage.load_registry_state()

        assert providers == []
        assert operators == []
        assert coordinator is None
        assert events == []

    def test_persist_and_load(self, storage):
        provider = generate_address()
        operator = generate_address()
        coordinator = generate_address()
        info = StakingProviderInfo(
            operator=operator, authorized=2**95, operator_confirmed=True, index=1,
            deauthorizing=5, end_deauthorization=2**63,
        )
        event = {"event": "OperatorUpdated", "staking_provider": provider, "operator": operator}

        storage.persist_registry_update(
            [info.to_row(provider)], [(operator, provider)], [], coordinator, [event]
        )

        providers, operators, loaded_coordinator, events = storage.load_registry_state()
        assert StakingProviderInfo.from_row(providers[0]) == (provider, info)
        assert operators == [(operator, provider)]
        assert loaded_coordinator == coordinator
        assert events == [event]

    def test_registry_params(self, storage):
        root = generate_address()
        assert storage.get_registry_params() == (None, None)

        storage.save_registry_params(2**95, root)

        assert storage.get_registry_params() == (2**95, root)

    def test_removed_operator(self, storage):
        provider = generate_address()
        operator = generate_address()
        storage.persist_registry_update([], [(operator, provider)], [], None, [])

        storage.persist_registry_update([], [], [operator], None, [])

        _, operators, _, _ = storage.load_registry_state()
        assert operators == []

    def test_upsert_provider(self, storage):
        provider = generate_address()
        first = StakingProviderInfo(index=1, authorized=10)
        second = StakingProviderInfo(index=1, authorized=20, operator=ZERO_ADDRESS)

        storage.persist_registry_update([first.to_row(provider)], [], [], None, [])
        storage.persist_registry_update([second.to_row(provider)], [], [], None, [])

        providers, _, _, _ = storage.load_registry_state()
        assert len(providers) == 1
        assert StakingProviderInfo.from_row(providers[0])[1].authorized == 20

    def test_events_by_provider(self, storage):
        a, b = generate_address(), generate_address()
        events = [
            {"event": "OperatorUpdated", "staking_provider": a, "operator": b},
            {"event": "OperatorUpdated", "staking_provider": b, "operator": a},
        ]
        storage.persist_registry_update([], [], [], None, events)

        assert storage.get_events(a) == [events[0]]
        assert storage.get_events() == events


class TestSQLiteAdapter:

    def test_chain_meta(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "nested" / "meta.db")

        adapter.set_chain_meta("coordinator", "0xabc")

        assert adapter.get_chain_meta("coordinator") == "0xabc"
        assert adapter.get_chain_meta("missing") is None
        adapter.close()
