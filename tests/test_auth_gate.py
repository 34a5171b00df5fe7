"""Tests for the login state machine and second-factor verification."""

from datetime import timedelta

import pytest

from aegis.core import crypto
from aegis.core.errors import (
    AuthError,
    ExpiredToken,
    InvalidCredentials,
    InvalidSecondFactor,
    InvalidToken,
)
from aegis.server.auth_gate import AuthGate
from aegis.server.security import SECOND_FACTOR_TOKEN, create_access_token

T0 = 1_700_000_010.0


@pytest.fixture
def frozen_gate(session, test_settings):
    """AuthGate whose clock the test moves by hand."""
    clock = {"now": T0}
    gate = AuthGate(session, test_settings, clock=lambda: clock["now"])
    gate.frozen = clock
    return gate


@pytest.fixture
def carol(registry, user_by_name):
    """User enrolled in 2FA; returns the stored TOTP secret."""
    registry.register("carol", "carol@example.com", "hunter22", enable_second_factor=True)
    return user_by_name("carol").second_factor_secret


class TestPasswordLogin:
    def test_login_without_second_factor(self, gate, context, alice):
        alice_id, _ = alice
        result = gate.login("alice", "correct horse")
        assert result.twofa_required is False
        assert result.temp_user_id is None
        assert context.resolve(result.token) == alice_id

    def test_login_returns_registration_salt(self, registry, gate):
        registered = registry.register("dave", "dave@example.com", "pw")
        assert gate.login("dave", "pw").encryption_salt == registered.encryption_salt

    def test_wrong_password(self, gate, alice):
        with pytest.raises(InvalidCredentials):
            gate.login("alice", "wrong horse")

    def test_unknown_user(self, gate):
        with pytest.raises(AuthError):
            gate.login("nobody", "whatever")

    def test_username_match_is_exact(self, gate, alice):
        with pytest.raises(InvalidCredentials):
            gate.login("ALICE", "correct horse")


class TestSecondFactorLogin:
    def test_login_requires_second_factor(self, frozen_gate, carol):
        result = frozen_gate.login("carol", "hunter22")
        assert result.twofa_required is True
        assert result.token is None
        assert result.temp_user_id
        assert len(result.encryption_salt) == 32

    def test_temp_id_is_not_a_session(self, frozen_gate, context, carol):
        result = frozen_gate.login("carol", "hunter22")
        with pytest.raises(InvalidToken):
            context.resolve(result.temp_user_id)

    def test_correct_code_issues_session(self, frozen_gate, context, carol, user_by_name):
        pending = frozen_gate.login("carol", "hunter22")
        code = crypto.generate_code(carol, at=T0)

        result = frozen_gate.verify_second_factor(pending.temp_user_id, code)

        assert result.twofa_required is False
        assert result.encryption_salt == pending.encryption_salt
        assert context.resolve(result.token) == user_by_name("carol").id

    def test_wrong_code(self, frozen_gate, carol):
        pending = frozen_gate.login("carol", "hunter22")
        code = crypto.generate_code(carol, at=T0)
        wrong = str((int(code) + 1) % 1_000_000).zfill(6)
        with pytest.raises(InvalidSecondFactor):
            frozen_gate.verify_second_factor(pending.temp_user_id, wrong)

    def test_code_from_outside_window(self, frozen_gate, carol):
        pending = frozen_gate.login("carol", "hunter22")
        stale = crypto.generate_code(carol, at=T0 - 300)
        with pytest.raises(InvalidSecondFactor):
            frozen_gate.verify_second_factor(pending.temp_user_id, stale)

    def test_code_cannot_be_replayed(self, frozen_gate, carol):
        code = crypto.generate_code(carol, at=T0)
        pending = frozen_gate.login("carol", "hunter22")
        frozen_gate.verify_second_factor(pending.temp_user_id, code)

        pending = frozen_gate.login("carol", "hunter22")
        with pytest.raises(InvalidSecondFactor):
            frozen_gate.verify_second_factor(pending.temp_user_id, code)

    def test_older_code_rejected_after_newer_one(self, frozen_gate, carol):
        """Once a step is used, earlier steps in the window are spent too."""
        pending = frozen_gate.login("carol", "hunter22")
        frozen_gate.verify_second_factor(pending.temp_user_id, crypto.generate_code(carol, at=T0))

        earlier = crypto.generate_code(carol, at=T0 - 30)
        pending = frozen_gate.login("carol", "hunter22")
        with pytest.raises(InvalidSecondFactor):
            frozen_gate.verify_second_factor(pending.temp_user_id, earlier)

    def test_next_code_accepted_later(self, frozen_gate, carol):
        pending = frozen_gate.login("carol", "hunter22")
        frozen_gate.verify_second_factor(pending.temp_user_id, crypto.generate_code(carol, at=T0))

        frozen_gate.frozen["now"] = T0 + 30
        pending = frozen_gate.login("carol", "hunter22")
        result = frozen_gate.verify_second_factor(
            pending.temp_user_id, crypto.generate_code(carol, at=T0 + 30)
        )
        assert result.token

    def test_session_token_is_not_a_temp_id(self, frozen_gate, alice, carol):
        _, alice_token = alice
        with pytest.raises(InvalidToken):
            frozen_gate.verify_second_factor(alice_token, "000000")

    def test_expired_temp_id(self, frozen_gate, test_settings, carol, user_by_name):
        temp = create_access_token(
            user_by_name("carol").id,
            token_type=SECOND_FACTOR_TOKEN,
            expires_delta=timedelta(seconds=-1),
            settings=test_settings,
        )
        with pytest.raises(ExpiredToken):
            frozen_gate.verify_second_factor(temp, crypto.generate_code(carol, at=T0))

    def test_user_without_second_factor(self, frozen_gate, test_settings, alice):
        alice_id, _ = alice
        temp = create_access_token(alice_id, token_type=SECOND_FACTOR_TOKEN, settings=test_settings)
        with pytest.raises(InvalidSecondFactor):
            frozen_gate.verify_second_factor(temp, "123456")
