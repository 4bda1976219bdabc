"""OAuth credential lifecycle for the Google Calendar integration.

Covers the PKCE authorization-code flow that creates a credential, the
refresh-token grant that keeps it usable, and disconnection.
"""
from __future__ import annotations
import base64
import logging
import os
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from sqlalchemy.orm import Session

from ..db import models
from ..domain.calendar import as_utc
from ..domain.enums import PROVIDER_GOOGLE
from ..errors import AuthExpired, AuthNotConnected, ValidationAppError
from .encryption_service import get_encryption_service, TokenDecryptError
from .lease import LeaseManager, SCOPE_TOKEN_REFRESH
from .metrics import OAUTH_EXCHANGE_COUNT, OAUTH_EXCHANGE_LATENCY, TOKEN_REFRESH_COUNT
from .state_store import MemoryStateStore, RedisStateStore, StateStore
try:  # optional tracing
    from opentelemetry import trace
    _vault_tracer = trace.get_tracer(__name__)
except ImportError:  # pragma: no cover
    _vault_tracer = None

logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
REVOKE_URI = "https://oauth2.googleapis.com/revoke"
DEFAULT_CALENDAR_ID = "primary"
REFRESH_MARGIN = timedelta(seconds=60)


@dataclass
class TokenGrant:
    access_token: str
    expires_at: datetime
    refresh_token: Optional[str] = None
    scopes: List[str] = field(default_factory=list)


def _default_state_store(ttl_seconds: int, max_entries: int) -> StateStore:
    backend = os.getenv('OAUTH_STATE_BACKEND', 'memory').lower()
    if backend == 'redis':
        import redis  # type: ignore

        client = redis.from_url(os.getenv('REDIS_URL', 'redis://localhost:6379/0'))
        return RedisStateStore(client, ttl_seconds, max_entries)
    return MemoryStateStore(ttl_seconds, max_entries)


class TokenVault:
    """Stores, refreshes and revokes the per-user calendar credential."""

    GOOGLE_SCOPES = ['https://www.googleapis.com/auth/calendar.events']

    _STATE_TTL_SECONDS = 600
    _STATE_MAX_ENTRIES = 50

    def __init__(
        self,
        leases: Optional[LeaseManager] = None,
        state_store: Optional[StateStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.google_client_id = os.getenv('GOOGLE_CLIENT_ID')
        self.google_client_secret = os.getenv('GOOGLE_CLIENT_SECRET')
        self.leases = leases or LeaseManager()
        self.state_store = state_store or _default_state_store(self._STATE_TTL_SECONDS, self._STATE_MAX_ENTRIES)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # --- credential row ---

    def get(self, db: Session, user_id: str) -> models.OAuthCredential:
        credential = (
            db.query(models.OAuthCredential)
            .filter(models.OAuthCredential.user_id == user_id)
            .first()
        )
        if not credential:
            raise AuthNotConnected()
        return credential

    def is_connected(self, db: Session, user_id: str) -> bool:
        return (
            db.query(models.OAuthCredential.id)
            .filter(models.OAuthCredential.user_id == user_id)
            .first()
            is not None
        )

    def access_token(self, credential: models.OAuthCredential) -> str:
        try:
            return get_encryption_service().decrypt(credential.access_token_encrypted)
        except TokenDecryptError:
            raise AuthExpired("Stored Google token is unreadable. Please reconnect.")

    def store(self, db: Session, user_id: str, tokens: TokenGrant, calendar_id: Optional[str] = None) -> models.OAuthCredential:
        """Upsert the user's single credential row."""
        enc = get_encryption_service()
        now = self.clock()
        existing = (
            db.query(models.OAuthCredential)
            .filter(models.OAuthCredential.user_id == user_id)
            .first()
        )
        if existing:
            existing.access_token_encrypted = enc.encrypt(tokens.access_token)
            # Google omits refresh_token on re-consent; keep the one we have
            if tokens.refresh_token:
                existing.refresh_token_encrypted = enc.encrypt(tokens.refresh_token)
            existing.expires_at = tokens.expires_at
            existing.scopes = tokens.scopes or existing.scopes
            if calendar_id:
                existing.calendar_id = calendar_id
            existing.updated_at = now
            db.commit()
            return existing
        if not tokens.refresh_token:
            logger.warning("No refresh_token granted for user %s; re-consent will be needed on expiry", user_id)
        credential = models.OAuthCredential(
            user_id=user_id,
            provider=PROVIDER_GOOGLE,
            access_token_encrypted=enc.encrypt(tokens.access_token),
            refresh_token_encrypted=enc.encrypt_optional(tokens.refresh_token),
            expires_at=tokens.expires_at,
            calendar_id=calendar_id or DEFAULT_CALENDAR_ID,
            scopes=tokens.scopes or self.GOOGLE_SCOPES,
            created_at=now,
            updated_at=now,
        )
        db.add(credential)
        db.commit()
        return credential

    def revoke(self, db: Session, user_id: str) -> bool:
        """Disconnect: best-effort upstream revocation, then delete the row."""
        credential = (
            db.query(models.OAuthCredential)
            .filter(models.OAuthCredential.user_id == user_id)
            .first()
        )
        if not credential:
            return False
        try:
            token = get_encryption_service().decrypt_optional(
                credential.refresh_token_encrypted
            ) or get_encryption_service().decrypt(credential.access_token_encrypted)
            requests.post(REVOKE_URI, params={"token": token}, timeout=10)
        except (requests.RequestException, TokenDecryptError) as e:
            logger.warning("Upstream token revocation failed for user %s: %s", user_id, e)
        db.delete(credential)
        db.commit()
        logger.info("Calendar credential deleted for user %s", user_id)
        return True

    # --- refresh ---

    def needs_refresh(self, credential: models.OAuthCredential) -> bool:
        return self.clock() > as_utc(credential.expires_at) - REFRESH_MARGIN

    def ensure_fresh(self, db: Session, credential: models.OAuthCredential) -> models.OAuthCredential:
        """Return a credential whose access token is valid for at least REFRESH_MARGIN.

        Refresh runs under the user's token_refresh lease. The row is re-read
        after acquiring it: if a concurrent worker already refreshed, that
        token is used as-is rather than refreshed again.
        """
        if not self.needs_refresh(credential):
            return credential
        with self.leases.hold(db, SCOPE_TOKEN_REFRESH, credential.user_id):
            db.refresh(credential)
            if not self.needs_refresh(credential):
                return credential
            try:
                refresh_token = get_encryption_service().decrypt_optional(credential.refresh_token_encrypted)
            except TokenDecryptError:
                refresh_token = None
            if not refresh_token:
                TOKEN_REFRESH_COUNT.labels(outcome='no_refresh_token').inc()
                raise AuthExpired("Token expired and no refresh token available. Please reconnect.")
            try:
                grant = self._refresh_grant(refresh_token)
            except GoogleAuthError as e:
                TOKEN_REFRESH_COUNT.labels(outcome='error').inc()
                logger.warning("Token refresh failed for user %s: %s", credential.user_id, e)
                raise AuthExpired()
            enc = get_encryption_service()
            credential.access_token_encrypted = enc.encrypt(grant.access_token)
            if grant.refresh_token:
                credential.refresh_token_encrypted = enc.encrypt(grant.refresh_token)
            credential.expires_at = grant.expires_at
            credential.updated_at = self.clock()
            db.commit()
            TOKEN_REFRESH_COUNT.labels(outcome='success').inc()
            logger.info("Refreshed calendar token for user %s", credential.user_id)
            return credential

    def _refresh_grant(self, refresh_token: str) -> TokenGrant:
        """refresh_token grant against the token endpoint."""
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.google_client_id,
            client_secret=self.google_client_secret,
        )
        creds.refresh(GoogleRequest())
        expires_at = as_utc(creds.expiry) if creds.expiry else self.clock() + timedelta(hours=1)
        return TokenGrant(access_token=creds.token, refresh_token=creds.refresh_token, expires_at=expires_at)

    # --- authorization-code flow ---

    def _require_config(self):
        if not self.google_client_id or not self.google_client_secret:
            raise ValidationAppError("OAUTH_CONFIG_MISSING", "Google OAuth credentials not configured")

    def _flow(self, redirect_uri: str, code_verifier: Optional[str]) -> Flow:
        return Flow.from_client_config(
            {
                "web": {
                    "client_id": self.google_client_id,
                    "client_secret": self.google_client_secret,
                    "auth_uri": AUTH_URI,
                    "token_uri": TOKEN_URI,
                }
            },
            scopes=self.GOOGLE_SCOPES,
            redirect_uri=redirect_uri,
            code_verifier=code_verifier,
            autogenerate_code_verifier=False,
        )

    def start_authorization(self, user_id: str, redirect_uri: str) -> Dict[str, str]:
        """Build the consent URL. The PKCE verifier stays server-side, keyed by state."""
        self._require_config()
        state = base64.urlsafe_b64encode(secrets.token_bytes(18)).decode('utf-8').rstrip('=')
        code_verifier = base64.urlsafe_b64encode(secrets.token_bytes(32)).decode('utf-8').rstrip('=')
        flow = self._flow(redirect_uri, code_verifier)
        authorization_url, _ = flow.authorization_url(
            access_type='offline',
            include_granted_scopes='true',
            state=state,
            prompt='consent',
        )
        self.state_store.put(state, user_id, code_verifier, time.time())
        return {"authorization_url": authorization_url, "state": state}

    def exchange_code(self, db: Session, code: str, state: str, redirect_uri: str) -> models.OAuthCredential:
        """Exchange the authorization code and persist the resulting tokens."""
        self._require_config()
        pending = self.state_store.pop(state)
        if not pending:
            raise ValidationAppError("OAUTH_STATE_INVALID", "State not found or expired")
        flow = self._flow(redirect_uri, pending["code_verifier"])
        try:
            with OAUTH_EXCHANGE_LATENCY.time():
                if _vault_tracer:
                    with _vault_tracer.start_as_current_span("oauth.exchange_code") as span:
                        flow.fetch_token(code=code)
                        span.set_attribute("oauth.provider", PROVIDER_GOOGLE)
                else:
                    flow.fetch_token(code=code)
            credentials = flow.credentials
        except Exception as e:  # oauthlib raises several unrelated types here
            OAUTH_EXCHANGE_COUNT.labels(outcome='error').inc()
            logger.warning("OAuth code exchange failed: %s", e)
            raise ValidationAppError("OAUTH_CODE_INVALID", f"Failed to exchange code: {e}")
        OAUTH_EXCHANGE_COUNT.labels(outcome='success').inc()
        expires_at = as_utc(credentials.expiry) if credentials.expiry else self.clock() + timedelta(hours=1)
        grant = TokenGrant(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expires_at=expires_at,
            scopes=list(credentials.scopes or self.GOOGLE_SCOPES),
        )
        return self.store(db, pending["user_id"], grant)
