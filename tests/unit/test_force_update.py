"""
Tests for the force-update gate.

Tests cover:
1. Updater management by the owner
2. Force updates bypassing the root application
3. Rejection of callers without the updater capability
"""

import pytest

from tacochild.crypto import ZERO_ADDRESS, generate_address
from tacochild.core.collaborators import deploy_child_application
from tacochild.core.registry import ForceUpdateGate


@pytest.fixture
def deployed():
    return deploy_child_application(minimum_authorization=10)


@pytest.fixture
def owner():
    return generate_address()


@pytest.fixture
def gate(deployed, owner):
    return ForceUpdateGate(deployed[0], owner)


@pytest.fixture
def updater(gate, owner):
    account = generate_address()
    gate.grant_updater(owner, account)
    return account


class TestUpdaterManagement:
    """Tests for granting and revoking the updater capability."""

    def test_owner_required(self, deployed):
        with pytest.raises(ValueError):
            ForceUpdateGate(deployed[0], ZERO_ADDRESS)

    def test_grant_by_owner(self, gate, owner):
        account = generate_address()

        success, _ = gate.grant_updater(owner, account)

        assert success
        assert gate.is_updater(account)
        assert gate.is_updater(account.lower())

    def test_grant_by_non_owner_fails(self, gate):
        account = generate_address()

        success, err = gate.grant_updater(generate_address(), account)

        assert not success
        assert "owner" in err
        assert not gate.is_updater(account)

    def test_revoke(self, gate, owner, updater):
        success, _ = gate.revoke_updater(owner, updater)

        assert success
        assert not gate.is_updater(updater)

    def test_grant_zero_address_fails(self, gate, owner):
        success, err = gate.grant_updater(owner, ZERO_ADDRESS)

        assert not success
        assert "zero" in err

    def test_is_updater_tolerates_garbage(self, gate):
        assert not gate.is_updater("not-an-address")


class TestForceUpdates:
    """Tests for the alternate entry points."""

    def test_force_update_operator(self, deployed, gate, updater):
        registry = deployed[0]
        provider = generate_address()
        operator = generate_address()

        success, _ = gate.force_update_operator(updater, provider, operator)

        assert success
        assert registry.operator_of(provider) == operator
        assert registry.staking_providers == [provider]
        assert registry.event_log.events[-1].name == "OperatorUpdated"

    def test_force_update_authorization(self, deployed, gate, updater):
        registry = deployed[0]
        provider = generate_address()

        success, _ = gate.force_update_authorization(updater, provider, 100, 25, 1234)

        assert success
        info = registry.get_staking_provider_info(provider)
        assert (info.authorized, info.deauthorizing, info.end_deauthorization) == (100, 25, 1234)

    def test_force_update_legacy_form(self, deployed, gate, updater):
        registry = deployed[0]
        provider = generate_address()
        gate.force_update_authorization(updater, provider, 100, 25, 1234)

        gate.force_update_authorization(updater, provider, 90)

        info = registry.get_staking_provider_info(provider)
        assert (info.authorized, info.deauthorizing, info.end_deauthorization) == (90, 0, 0)

    def test_force_deauthorizing_above_authorized_rejected(self, deployed, gate, updater):
        registry = deployed[0]
        provider = generate_address()

        success, err = gate.force_update_authorization(updater, provider, 100, 150, 500)

        assert not success
        assert "exceeds authorization" in err
        assert registry.authorized_stake(provider) == 0
        assert registry.eligible_stake(provider, 600) == 0

    def test_non_updater_rejected(self, deployed, gate, owner):
        registry = deployed[0]
        provider = generate_address()

        success, err = gate.force_update_operator(owner, provider, generate_address())

        assert not success
        assert "not an updater" in err
        assert registry.get_staking_providers_length() == 0

    def test_revoked_updater_rejected(self, deployed, gate, owner, updater):
        gate.revoke_updater(owner, updater)

        success, _ = gate.force_update_authorization(updater, generate_address(), 100)

        assert not success

    def test_root_path_still_guarded(self, deployed, gate, updater):
        """The updater capability does not open the root entry points."""
        registry = deployed[0]

        success, err = registry.update_operator(updater, generate_address(), generate_address())

        assert not success
        assert "Only root application" in err

    def test_forced_provider_can_be_confirmed(self, deployed, gate, updater):
        registry, relay, coordinator = deployed
        provider = generate_address()
        operator = generate_address()
        gate.force_update_operator(updater, provider, operator)
        gate.force_update_authorization(updater, provider, 100)

        success, _ = coordinator.confirm_operator(operator)

        assert success
        total, active = registry.get_active_staking_providers(0)
        assert total == 100
        assert relay.confirmed_operators == [operator]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
