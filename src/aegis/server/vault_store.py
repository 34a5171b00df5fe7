import logging
from datetime import datetime
from typing import Callable, List

from sqlalchemy import case, delete, update
from sqlmodel import Session, select

from ..core.errors import NotFoundError, ValidationError
from .database import storage_guard
from .models import CredentialRecord, utcnow

logger = logging.getLogger(__name__)


def _require(**fields: str) -> None:
    for name, value in fields.items():
        if not value or not value.strip():
            raise ValidationError(f"{name} is required")


class VaultStore:
    """
    Owner-scoped credential storage.

    ``owner_id`` always comes from SessionContext.resolve. Every read, update
    and delete filters on (id, owner_id) together, so another user's record
    and a missing record look the same: NotFoundError.
    The ``password`` column is client ciphertext and is passed through as-is.
    """

    def __init__(self, session: Session, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.clock = clock

    def list(self, owner_id: int) -> List[CredentialRecord]:
        statement = (
            select(CredentialRecord)
            .where(CredentialRecord.owner_id == owner_id)
            .order_by(CredentialRecord.created_at, CredentialRecord.id)
        )
        with storage_guard(self.session, "list credentials"):
            return list(self.session.exec(statement).all())

    def create(self, owner_id: int, website: str, username: str, password: str,
               notes: str = "") -> CredentialRecord:
        _require(website=website, username=username, password=password)
        now = self.clock()
        record = CredentialRecord(
            owner_id=owner_id,
            website=website,
            username=username,
            password=password,
            notes=notes or "",
            created_at=now,
            updated_at=now,
        )
        with storage_guard(self.session, "create credential"):
            self.session.add(record)
            self.session.commit()
            self.session.refresh(record)

        logger.info("Created credential %s for user %s", record.id, owner_id)
        return record

    def update(self, id: int, owner_id: int, website: str, username: str, password: str,
               notes: str = "") -> CredentialRecord:
        _require(website=website, username=username, password=password)
        now = self.clock()
        statement = (
            update(CredentialRecord)
            .where(CredentialRecord.id == id, CredentialRecord.owner_id == owner_id)
            .values(
                website=website,
                username=username,
                password=password,
                notes=notes or "",
                # never move backwards, even if the wall clock does
                updated_at=case(
                    (CredentialRecord.updated_at > now, CredentialRecord.updated_at),
                    else_=now,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        with storage_guard(self.session, "update credential"):
            affected = self.session.execute(statement).rowcount
            self.session.commit()
            if affected == 0:
                raise NotFoundError(f"credential {id} not found for user {owner_id}")

            record = self.session.exec(
                select(CredentialRecord).where(
                    CredentialRecord.id == id, CredentialRecord.owner_id == owner_id
                )
            ).first()
        if record is None:
            # deleted between the update and the read-back
            raise NotFoundError(f"credential {id} vanished after update")

        logger.info("Updated credential %s for user %s", id, owner_id)
        return record

    def delete(self, id: int, owner_id: int) -> None:
        statement = (
            delete(CredentialRecord)
            .where(CredentialRecord.id == id, CredentialRecord.owner_id == owner_id)
            .execution_options(synchronize_session=False)
        )
        with storage_guard(self.session, "delete credential"):
            affected = self.session.execute(statement).rowcount
            self.session.commit()
        if affected == 0:
            raise NotFoundError(f"credential {id} not found for user {owner_id}")

        logger.info("Deleted credential %s for user %s", id, owner_id)
