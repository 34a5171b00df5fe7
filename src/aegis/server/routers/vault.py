# src/aegis/server/routers/vault.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from ...core.models import (
    CreateCredentialRequest,
    CredentialView,
    CredentialsResponse,
    DeleteCredentialRequest,
    MessageResponse,
    SessionRequest,
    UpdateCredentialRequest,
)
from ..config import Settings, get_settings
from ..database import get_session
from ..vault_store import VaultStore
from .auth import resolve_owner

router = APIRouter()


@router.post("/get_credentials", response_model=CredentialsResponse)
def get_credentials(
    payload: SessionRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    owner_id = resolve_owner(payload.session_token, session, settings)
    records = VaultStore(session).list(owner_id)
    return CredentialsResponse(
        credentials=[CredentialView.model_validate(record) for record in records]
    )


@router.post("/create_credential", response_model=MessageResponse)
def create_credential(
    payload: CreateCredentialRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    owner_id = resolve_owner(payload.session_token, session, settings)
    VaultStore(session).create(
        owner_id, payload.website, payload.username, payload.password, payload.notes
    )
    return MessageResponse(message="Credential added successfully")


@router.post("/update_credential", response_model=MessageResponse)
def update_credential(
    payload: UpdateCredentialRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    owner_id = resolve_owner(payload.session_token, session, settings)
    VaultStore(session).update(
        payload.id, owner_id, payload.website, payload.username, payload.password, payload.notes
    )
    return MessageResponse(message="Credential updated successfully")


@router.post("/delete_credential", response_model=MessageResponse)
def delete_credential(
    payload: DeleteCredentialRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    owner_id = resolve_owner(payload.session_token, session, settings)
    VaultStore(session).delete(payload.id, owner_id)
    return MessageResponse(message="Credential deleted successfully")
