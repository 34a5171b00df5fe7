import logging
import time
from typing import Callable

from sqlalchemy import update
from sqlmodel import Session, select, or_

from ..core import crypto
from ..core.errors import InvalidCredentials, InvalidSecondFactor
from ..core.models import LoginResult
from .config import Settings, settings as default_settings
from .database import storage_guard
from .models import User
from .security import (
    SECOND_FACTOR_TOKEN,
    burn_password_check,
    create_access_token,
    decode_access_token,
    verify_password,
)

logger = logging.getLogger(__name__)


class AuthGate:
    """
    Login state machine.

    Unauthenticated -> Authenticated when no second factor is enrolled.
    Unauthenticated -> AwaitingSecondFactor -> Authenticated otherwise; the
    pending state is represented by a short-lived signed temp id that only
    ``verify_second_factor`` accepts.
    """

    def __init__(self, session: Session, settings: Settings = default_settings,
                 clock: Callable[[], float] = time.time):
        self.session = session
        self.settings = settings
        self.clock = clock

    def _authenticated(self, user: User) -> LoginResult:
        user_id: int = user.id  # type: ignore
        return LoginResult(
            token=create_access_token(user_id, settings=self.settings),
            encryption_salt=user.encryption_salt,
            twofa_required=False,
        )

    def login(self, username: str, password: str) -> LoginResult:
        with storage_guard(self.session, "login"):
            user = self.session.exec(select(User).where(User.username == username)).first()

        if user is None:
            burn_password_check(password or "", self.settings.BCRYPT_ROUNDS)
            raise InvalidCredentials("unknown username")
        if not verify_password(password or "", user.password_hash):
            logger.info("Password mismatch for user %s", user.id)
            raise InvalidCredentials("password mismatch")

        if user.second_factor_secret is None:
            logger.info("User %s logged in", user.id)
            return self._authenticated(user)

        logger.info("User %s awaiting second factor", user.id)
        return LoginResult(
            token=None,
            encryption_salt=user.encryption_salt,
            twofa_required=True,
            temp_user_id=create_access_token(
                user.id,  # type: ignore
                token_type=SECOND_FACTOR_TOKEN,
                settings=self.settings,
            ),
        )

    def verify_second_factor(self, temp_user_id: str, code: str) -> LoginResult:
        user_id = decode_access_token(temp_user_id, SECOND_FACTOR_TOKEN, settings=self.settings)

        with storage_guard(self.session, "verify second factor"):
            user = self.session.get(User, user_id)
            if user is None or user.second_factor_secret is None:
                raise InvalidSecondFactor("no second factor enrolled")

            step = crypto.match_time_step(
                user.second_factor_secret,
                code,
                at=self.clock(),
                digits=self.settings.TOTP_DIGITS,
                interval=self.settings.TOTP_INTERVAL,
                window=self.settings.TOTP_VALID_WINDOW,
            )
            if step is None:
                logger.info("Rejected 2FA code for user %s", user_id)
                raise InvalidSecondFactor("code did not match")

            # Claim the time step in one statement; a replayed or concurrent
            # use of the same code finds the step already taken.
            statement = (
                update(User)
                .where(
                    User.id == user_id,
                    or_(User.second_factor_last_step.is_(None), User.second_factor_last_step < step),
                )
                .values(second_factor_last_step=step)
                .execution_options(synchronize_session=False)
            )
            claimed = self.session.execute(statement).rowcount
            self.session.commit()
            if claimed == 0:
                logger.warning("Replayed 2FA code for user %s", user_id)
                raise InvalidSecondFactor("code already used")

            self.session.refresh(user)

        logger.info("User %s passed second factor", user_id)
        return self._authenticated(user)
