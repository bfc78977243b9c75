"""
Session/Identity Gate.

`IdentitySession` tracks who is signed in for one request. It is built explicitly (see
`utils.helpers.get_identity_session`) and handed to the views through `flask.g`; nothing
reads identity from ambient module state. Lifecycle:

- ``init()``: restore the Supabase tokens kept (encrypted) in the Flask session, subscribe
  to the auth-state notification stream and resolve the identity.
- ``teardown()``: unsubscribe. Called at the end of every request and on sign-out.

`evaluate_gate` turns a session into the single branch a protected view must render.
"""

import enum
import logging

from cryptography.fernet import InvalidToken

from models import IdentityStatusEnum
from services.auth import AuthenticationError, AuthErrorKind, GENERIC_AUTH_MESSAGE
from utils.security import decrypt_payload, encrypt_payload

logger = logging.getLogger(__name__)


class GateDecision(enum.Enum):
    LOADING = 'loading'                    # Identity resolution still in flight; no redirect.
    REDIRECT = 'redirect'                  # Nobody signed in; go to the public page.
    ACCESS_DENIED = 'access_denied'        # Admin-only view, non-admin identity.
    PENDING_APPROVAL = 'pending_approval'  # Signed in but not approved yet.
    ALLOW = 'allow'


def evaluate_gate(identity_session, require_admin=False):
    """
    Decides which branch a protected view renders, in this order of precedence:
    loading, no identity, admin required, not approved, allowed.

    Args:
        identity_session (IdentitySession): The request's session.
        require_admin (bool, optional): Whether the view is admin-only. Defaults to False.

    Returns:
        GateDecision: The branch to render.
    """
    if identity_session.loading:
        return GateDecision.LOADING

    identity = identity_session.identity
    if identity is None:
        return GateDecision.REDIRECT

    if require_admin and not identity_session.is_admin:
        return GateDecision.ACCESS_DENIED

    if identity_session.is_admin:
        return GateDecision.ALLOW

    status = identity.status
    if status is IdentityStatusEnum.APPROVED:
        return GateDecision.ALLOW
    if status is IdentityStatusEnum.PENDING or status is IdentityStatusEnum.REJECTED:
        return GateDecision.PENDING_APPROVAL
    raise ValueError(f"Unhandled identity status: {status!r}")


class SessionTokenStore:
    """
    Keeps the Supabase access/refresh tokens in a dict-like session, Fernet-encrypted.

    Args:
        storage (MutableMapping): Usually `flask.session`.
    """

    KEY = 'supabase_tokens'

    def __init__(self, storage):
        self._storage = storage

    def load(self):
        """Returns (access_token, refresh_token), or None if absent or unreadable."""
        encrypted = self._storage.get(self.KEY)
        if not encrypted:
            return None
        try:
            tokens = decrypt_payload(encrypted)
            return tokens['access_token'], tokens['refresh_token']
        except (InvalidToken, ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable Supabase tokens from the session.")
            self.clear()
            return None

    def save(self, access_token, refresh_token):
        self._storage[self.KEY] = encrypt_payload({
            'access_token': access_token,
            'refresh_token': refresh_token,
        })

    def clear(self):
        self._storage.pop(self.KEY, None)


class IdentitySession:
    """
    The signed-in identity of one request.

    Attributes:
        identity (models.Identity or None): Resolved profile, None when signed out.
        loading (bool): True while the identity is being resolved.

    Args:
        auth (services.auth.AuthService): Auth boundary bound to the request's client.
        token_store (SessionTokenStore): Where the Supabase tokens live between requests.
    """

    def __init__(self, auth, token_store):
        self._auth = auth
        self._tokens = token_store
        self._subscription = None
        self.identity = None
        self.loading = True # Nothing resolved until init() runs.

    @property
    def is_admin(self):
        return self.identity is not None and self.identity.is_admin

    @property
    def api(self):
        """The data access façade bound to this session's client."""
        return self._auth.api

    @property
    def auth(self):
        return self._auth

    def init(self):
        """Restores stored tokens, subscribes to auth notifications and resolves the identity."""
        tokens = self._tokens.load()
        if tokens is not None:
            try:
                self._auth.restore_session(*tokens)
            except Exception as exc:
                # Expired or revoked refresh token: the visitor is simply signed out.
                logger.info(f"Stored Supabase session could not be restored: {exc}")
                self._tokens.clear()
                tokens = None
            else:
                refreshed = self._auth.current_tokens()
                if refreshed is not None:
                    self._tokens.save(*refreshed)

        self._subscription = self._auth.on_auth_state_change(self.handle_auth_event)

        if tokens is None:
            self.identity = None
            self.loading = False
        else:
            self.refresh()
        return self

    def refresh(self):
        """
        Fetches the profile of the signed-in user.

        A failed fetch clears the identity (signed out) instead of retrying.
        """
        self.loading = True
        try:
            self.identity = self._auth.get_current_identity()
        except Exception as exc:
            logger.warning(f"Failed to load the signed-in profile, treating the visitor as signed out: {exc}")
            self.identity = None
        finally:
            self.loading = False
        return self.identity

    def handle_auth_event(self, event, session):
        """
        Callback for the Supabase auth-state notification stream.

        Args:
            event: Notification name (SIGNED_IN, TOKEN_REFRESHED, SIGNED_OUT, ...).
            session: The Supabase session after the event, or None.
        """
        logger.debug(f"Auth state change: {event}")
        if session is not None and getattr(session, 'user', None) is not None:
            self._tokens.save(session.access_token, session.refresh_token)
            self.refresh()
        else:
            self._tokens.clear()
            self.identity = None
            self.loading = False

    def sign_in(self, email, password):
        """
        Signs in and resolves the profile.

        Returns:
            models.Identity: The signed-in identity.

        Raises:
            services.auth.AuthenticationError: Credentials rejected, email unconfirmed,
                                               or the profile could not be loaded.
        """
        session = self._auth.sign_in(email, password)
        self._tokens.save(session.access_token, session.refresh_token)

        user_id = getattr(getattr(session, 'user', None), 'id', None)
        if self.identity is None or self.identity.id != user_id:
            self.refresh()

        if self.identity is None:
            # Auth succeeded but there is no readable profile row.
            self.sign_out()
            raise AuthenticationError(AuthErrorKind.UNKNOWN, GENERIC_AUTH_MESSAGE)
        return self.identity

    def sign_out(self):
        """Signs out at Supabase, forgets the tokens and tears the session down."""
        try:
            self._auth.sign_out()
        finally:
            self._tokens.clear()
            self.identity = None
            self.loading = False
            self.teardown()

    def teardown(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
