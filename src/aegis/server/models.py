from typing import List, Optional, ClassVar
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, Relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__: ClassVar[str] = "users"
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    encryption_salt: str
    second_factor_secret: Optional[str] = None
    second_factor_last_step: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)
    credentials: List["CredentialRecord"] = Relationship(
        back_populates="owner", sa_relationship_kwargs={"cascade": "all, delete"}
    )


class CredentialRecord(SQLModel, table=True):
    __tablename__: ClassVar[str] = "credential_records"
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    website: str
    username: str
    password: str  # client-side ciphertext, never decrypted here
    notes: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    owner: Optional[User] = Relationship(back_populates="credentials")
