# src/aegis/server/routers/auth.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from ...core.models import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    LoginRequest,
    LoginResult,
    MessageResponse,
    Profile,
    RegisterRequest,
    RegistrationResult,
    SecondFactorRequest,
    SessionRequest,
)
from ..auth_gate import AuthGate
from ..config import Settings, get_settings
from ..database import get_session
from ..registry import UserRegistry
from ..session_context import SessionContext

router = APIRouter()


# --- Core dependency: who is calling ---
# The session token travels in the command body. Everything that is not
# login or registration resolves it here before touching storage.

def resolve_owner(session_token: str, session: Session, settings: Settings) -> int:
    return SessionContext(session, settings).resolve(session_token)


# --- Commands ---

@router.post("/login", response_model=LoginResult, response_model_exclude_none=True)
def login(
    payload: LoginRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    return AuthGate(session, settings).login(payload.username, payload.password)


@router.post("/verify_second_factor", response_model=LoginResult, response_model_exclude_none=True)
def verify_second_factor(
    payload: SecondFactorRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    return AuthGate(session, settings).verify_second_factor(payload.temp_user_id, payload.code)


@router.post("/register_user", response_model=RegistrationResult, response_model_exclude_none=True)
def register_user(
    payload: RegisterRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    return UserRegistry(session, settings).register(
        payload.username,
        payload.email,
        payload.password,
        enable_second_factor=payload.enable_second_factor,
    )


@router.post("/get_profile", response_model=Profile)
def get_profile(
    payload: SessionRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """
    Account details for the signed-in user, including the encryption salt
    the client needs to re-derive its key after a restart.
    """
    user_id = resolve_owner(payload.session_token, session, settings)
    return UserRegistry(session, settings).get_profile(user_id)


@router.post("/change_password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    user_id = resolve_owner(payload.session_token, session, settings)
    UserRegistry(session, settings).change_password(
        user_id, payload.current_password, payload.new_password
    )
    return MessageResponse(message="Password changed successfully")


@router.post("/delete_account", response_model=MessageResponse)
def delete_account(
    payload: DeleteAccountRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    user_id = resolve_owner(payload.session_token, session, settings)
    UserRegistry(session, settings).delete_account(user_id, payload.password)
    return MessageResponse(message="Account deleted successfully")
