from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CommandModel(BaseModel):
    # The shell speaks camelCase; Python code uses snake_case names.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- Requests ---

class LoginRequest(CommandModel):
    username: str
    password: str


class SecondFactorRequest(CommandModel):
    temp_user_id: str
    code: str


class RegisterRequest(CommandModel):
    username: str
    email: str
    password: str
    enable_second_factor: bool = False


class SessionRequest(CommandModel):
    session_token: str


class CredentialFields(CommandModel):
    website: str
    username: str
    password: str  # ciphertext produced by the client
    notes: str = ""


class CreateCredentialRequest(CredentialFields):
    session_token: str


class UpdateCredentialRequest(CredentialFields):
    id: int
    session_token: str


class DeleteCredentialRequest(CommandModel):
    id: int
    session_token: str


class ChangePasswordRequest(CommandModel):
    current_password: str
    new_password: str
    session_token: str


class DeleteAccountRequest(CommandModel):
    password: str
    session_token: str


# --- Results ---

class LoginResult(CommandModel):
    token: Optional[str] = None
    encryption_salt: str
    twofa_required: bool = False
    temp_user_id: Optional[str] = None


class RegistrationResult(CommandModel):
    token: str
    encryption_salt: str
    second_factor_secret: Optional[str] = None


class CredentialView(CommandModel):
    id: int
    website: str
    username: str
    password: str
    notes: str
    created_at: datetime
    updated_at: datetime


class CredentialsResponse(CommandModel):
    credentials: List[CredentialView]


class Profile(CommandModel):
    id: int
    username: str
    email: str
    encryption_salt: str
    twofa_enabled: bool


class MessageResponse(CommandModel):
    message: str


class ErrorResponse(CommandModel):
    error: str
