from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from ..db.session import get_db
from ..db import models
from ..services.token_vault import TokenVault
from .auth import get_current_user
from .deps import get_token_vault

router = APIRouter(prefix="/oauth", tags=["oauth"])


@router.get("/google/start")
def start_google_auth(
    redirect_uri: str = Query(...),
    current_user: models.User = Depends(get_current_user),
    vault: TokenVault = Depends(get_token_vault),
):
    res = vault.start_authorization(current_user.id, redirect_uri)
    return {"authorizationUrl": res["authorization_url"], "state": res["state"]}


@router.post("/google/exchange")
def exchange_google_code(
    code: str = Query(...),
    state: str = Query(...),
    redirect_uri: str = Query(...),
    db: Session = Depends(get_db),
    vault: TokenVault = Depends(get_token_vault),
):
    """Provider redirect target. The user is resolved from the stored state."""
    credential = vault.exchange_code(db, code, state, redirect_uri)
    return {
        "connected": True,
        "calendarId": credential.calendar_id,
        "expiresAt": credential.expires_at,
    }


@router.get("/google/status")
def google_status(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    vault: TokenVault = Depends(get_token_vault),
):
    return {"connected": vault.is_connected(db, current_user.id)}


@router.delete("/google")
def disconnect_google(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    vault: TokenVault = Depends(get_token_vault),
):
    removed = vault.revoke(db, current_user.id)
    return {"disconnected": removed}
