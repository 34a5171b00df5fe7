import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, or_

from ..core import crypto
from ..core.errors import DuplicateUser, InvalidCredentials, InvalidToken, ValidationError
from ..core.models import Profile, RegistrationResult
from .config import Settings, settings as default_settings
from .database import storage_guard
from .models import User
from .security import BCRYPT_MAX_BYTES, create_access_token, get_password_hash, verify_password

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _validate_password(password: str) -> None:
    if not password:
        raise ValidationError("password is required")
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValidationError("password is longer than 72 bytes")


class UserRegistry:
    """Account creation, profile lookup, password change and account removal."""

    def __init__(self, session: Session, settings: Settings = default_settings):
        self.session = session
        self.settings = settings

    def _validate(self, username: str, email: str, password: str) -> None:
        if not username or not username.strip():
            raise ValidationError("username is required")
        email = normalize_email(email or "")
        if not email:
            raise ValidationError("email is required")
        local, _, domain = email.rpartition("@")
        if not local.strip() or not domain.strip():
            raise ValidationError("email is malformed")
        _validate_password(password)

    def register(self, username: str, email: str, password: str,
                 enable_second_factor: bool = False) -> RegistrationResult:
        self._validate(username, email, password)
        email = normalize_email(email)

        with storage_guard(self.session, "register"):
            # 1. Early exit for an identity that is already taken.
            #    The UNIQUE constraints below are what actually guarantee it.
            statement = select(User).where(or_(User.username == username, User.email == email))
            if self.session.exec(statement).first() is not None:
                raise DuplicateUser("username or email taken")

            # 2. Build the account
            second_factor_secret = None
            if enable_second_factor:
                second_factor_secret = crypto.generate_second_factor_secret()

            new_user = User(
                username=username,
                email=email,
                password_hash=get_password_hash(password, self.settings.BCRYPT_ROUNDS),
                encryption_salt=crypto.generate_encryption_salt(self.settings.ENCRYPTION_SALT_BYTES),
                second_factor_secret=second_factor_secret,
            )

            # 3. Insert; a concurrent registration surfaces here as a conflict
            self.session.add(new_user)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                raise DuplicateUser("username or email taken (constraint)")
            self.session.refresh(new_user)

        user_id: int = new_user.id  # type: ignore
        logger.info("Registered user %s (2FA: %s)", user_id, enable_second_factor)

        enrollment_uri = None
        if second_factor_secret is not None:
            enrollment_uri = crypto.provisioning_uri(
                second_factor_secret,
                account_name=new_user.username,
                issuer=self.settings.TOTP_ISSUER,
                digits=self.settings.TOTP_DIGITS,
                interval=self.settings.TOTP_INTERVAL,
            )

        return RegistrationResult(
            token=create_access_token(user_id, settings=self.settings),
            encryption_salt=new_user.encryption_salt,
            second_factor_secret=enrollment_uri,
        )

    def get_profile(self, user_id: int) -> Profile:
        with storage_guard(self.session, "get profile"):
            user = self.session.get(User, user_id)
        if user is None:
            raise InvalidToken("user no longer exists")
        return Profile(
            id=user_id,
            username=user.username,
            email=user.email,
            encryption_salt=user.encryption_salt,
            twofa_enabled=user.second_factor_secret is not None,
        )

    def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        """
        Replace the login password after re-checking the current one.
        The encryption salt stays as it is; re-keying the vault is the client's job.
        """
        _validate_password(new_password)
        with storage_guard(self.session, "change password"):
            user = self.session.get(User, user_id)
            if user is None:
                raise InvalidToken("user no longer exists")
            if not verify_password(current_password or "", user.password_hash):
                raise InvalidCredentials("password re-check failed")

            user.password_hash = get_password_hash(new_password, self.settings.BCRYPT_ROUNDS)
            self.session.add(user)
            self.session.commit()

        logger.info("Changed password for user %s", user_id)

    def delete_account(self, user_id: int, password: str) -> None:
        """Remove the account and, with it, every credential record it owns."""
        with storage_guard(self.session, "delete account"):
            user = self.session.get(User, user_id)
            if user is None:
                raise InvalidToken("user no longer exists")
            if not verify_password(password or "", user.password_hash):
                raise InvalidCredentials("password re-check failed")

            self.session.delete(user)
            self.session.commit()

        logger.info("Deleted user %s and their vault", user_id)
