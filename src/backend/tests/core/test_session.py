"""
Tests for session context and identity epochs.
"""

import pytest

from core.exceptions import RejectedCommand, StaleIdentityDiscard
from core.session import IdentityEpoch, Role, SessionContext


@pytest.mark.unit
class TestIdentityEpoch:
    """Tests for epoch tokens."""

    def test_token_current_until_advance(self):
        epoch = IdentityEpoch()
        token = epoch.token()
        assert token.is_current()

        epoch.advance()
        assert not token.is_current()
        assert epoch.token().is_current()

    def test_ensure_current_raises_when_stale(self):
        epoch = IdentityEpoch()
        token = epoch.token()
        epoch.advance()

        with pytest.raises(StaleIdentityDiscard) as exc_info:
            token.ensure_current()
        assert (exc_info.value.captured_epoch, exc_info.value.current_epoch) == (0, 1)


@pytest.mark.unit
class TestSessionContext:
    """Tests for SessionContext."""

    def test_roles(self):
        assert SessionContext(address="0x1", role=Role.ADMIN).is_admin
        assert not SessionContext(address="0x1", role=Role.VOTER).is_admin

    def test_session_ids_are_unique(self):
        assert SessionContext(address="0x1", role=Role.VOTER).session_id != SessionContext(
            address="0x1", role=Role.VOTER
        ).session_id

    def test_rebind_advances_epoch(self):
        session = SessionContext(address="0x1", role=Role.VOTER)
        token = session.epoch.token()
        assert session.rebind("0x2") == 1
        assert session.address == "0x2"
        assert not token.is_current()

    def test_close_invalidates(self):
        session = SessionContext(address="0x1", role=Role.VOTER)
        token = session.epoch.token()
        session.close()
        assert not session.active
        assert not token.is_current()


@pytest.mark.unit
def test_rejected_command_str():
    assert str(RejectedCommand("Election is not open", command="end_election")) == (
        "end_election rejected: Election is not open"
    )
    assert str(RejectedCommand("Election is not open")) == "Election is not open"
