import logging

from sqlmodel import Session

from ..core.errors import InvalidToken
from .config import Settings, settings as default_settings
from .database import storage_guard
from .models import User
from .security import SESSION_TOKEN, decode_access_token

logger = logging.getLogger(__name__)


class SessionContext:
    """
    Turns a session token into the id of the user it was issued to.

    Every protected command goes through ``resolve``; the acting identity is
    never taken from a field the caller supplied.
    """

    def __init__(self, session: Session, settings: Settings = default_settings):
        self.session = session
        self.settings = settings

    def resolve(self, token: str) -> int:
        user_id = decode_access_token(token, SESSION_TOKEN, settings=self.settings)

        with storage_guard(self.session, "resolve session"):
            user = self.session.get(User, user_id)
        if user is None:
            # signed for an account that has since been deleted
            logger.info("Rejected session token for missing user %s", user_id)
            raise InvalidToken("user no longer exists")
        return user_id
