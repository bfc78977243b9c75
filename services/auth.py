"""
Authentication boundary.

Wraps the Supabase auth client: sign-up (with the profile row), sign-in, sign-out, the
current identity, token restore, and the auth-state notification stream. Sign-in failures
are classified into the three kinds the sign-in banners distinguish.
"""

import enum
import logging

from models import Identity

logger = logging.getLogger(__name__)


class AuthErrorKind(enum.Enum):
    INVALID_CREDENTIALS = 'invalid_credentials'
    EMAIL_NOT_CONFIRMED = 'email_not_confirmed'
    UNKNOWN = 'unknown'


# Substrings of Supabase auth error messages/codes mapped to a kind and a user-facing message.
AUTH_ERROR_MAP = {
    'invalid login credentials': (AuthErrorKind.INVALID_CREDENTIALS, 'Invalid email or password. Please try again.'),
    'invalid_credentials': (AuthErrorKind.INVALID_CREDENTIALS, 'Invalid email or password. Please try again.'),
    'invalid_grant': (AuthErrorKind.INVALID_CREDENTIALS, 'Invalid email or password. Please try again.'),
    'email not confirmed': (AuthErrorKind.EMAIL_NOT_CONFIRMED, 'Please confirm your email address before signing in.'),
    'email_not_confirmed': (AuthErrorKind.EMAIL_NOT_CONFIRMED, 'Please confirm your email address before signing in.'),
}

GENERIC_AUTH_MESSAGE = 'Something went wrong. Please try again.'


class AuthenticationError(Exception):
    """A sign-in or sign-up failure, carrying its kind and a message fit for the banner."""

    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind
        self.message = message


def classify_auth_error(exc):
    """
    Maps an exception raised by the Supabase auth client to an AuthenticationError.

    The classification inspects the error text (and `code` when present), since the error
    classes differ between client versions.

    Args:
        exc (Exception): The original exception.

    Returns:
        AuthenticationError: Never raised here; the caller decides.
    """
    haystack = f"{getattr(exc, 'code', '') or ''} {exc}".lower()
    for needle, (kind, message) in AUTH_ERROR_MAP.items():
        if needle in haystack:
            return AuthenticationError(kind, message)
    return AuthenticationError(AuthErrorKind.UNKNOWN, GENERIC_AUTH_MESSAGE)


class AuthService:
    """
    Auth operations for one Supabase client.

    Args:
        client (supabase.Client): The request's client.
        api (services.api.PortalAPI): Façade used for profile rows.
    """

    def __init__(self, client, api):
        self._client = client
        self._api = api

    @property
    def api(self):
        return self._api

    def sign_up(self, email, password, profile):
        """
        Creates the auth user and its PENDING profile row.

        Args:
            email (str): Sign-in email, the identity's unique handle.
            password (str): Sign-in password.
            profile (dict): Profile columns (full_name, phone, id_type, ...).

        Returns:
            Identity: The created profile.

        Raises:
            AuthenticationError: If Supabase rejected the sign-up.
            Exception: Failures inserting the profile row propagate unchanged.
        """
        try:
            response = self._client.auth.sign_up({
                'email': email,
                'password': password,
                'options': {'data': {'full_name': profile.get('full_name', '')}},
            })
        except Exception as exc:
            logger.warning(f"Sign-up rejected for {email}: {exc}")
            raise classify_auth_error(exc) from exc

        user = getattr(response, 'user', None)
        if user is None:
            raise AuthenticationError(AuthErrorKind.UNKNOWN, GENERIC_AUTH_MESSAGE)

        row = dict(profile)
        row['id'] = user.id
        row['email'] = email
        return self._api.create_identity(row)

    def sign_in(self, email, password):
        """
        Signs in with email and password.

        Returns:
            The Supabase session (access_token, refresh_token, user).

        Raises:
            AuthenticationError: Classified failure.
        """
        try:
            response = self._client.auth.sign_in_with_password({'email': email, 'password': password})
        except Exception as exc:
            raise classify_auth_error(exc) from exc
        if getattr(response, 'session', None) is None:
            raise AuthenticationError(AuthErrorKind.UNKNOWN, GENERIC_AUTH_MESSAGE)
        return response.session

    def sign_out(self):
        self._client.auth.sign_out()

    def get_current_identity(self):
        """
        Returns the profile row of the signed-in auth user, or None when nobody is signed in.

        Raises:
            Exception: Failures reading the profile propagate.
        """
        session = self._client.auth.get_session()
        user = getattr(session, 'user', None) if session is not None else None
        if user is None:
            return None
        return self._api.get_identity(user.id)

    def restore_session(self, access_token, refresh_token):
        """Installs previously issued tokens on the client; Supabase refreshes them if expired."""
        self._client.auth.set_session(access_token, refresh_token)

    def current_tokens(self):
        """Returns (access_token, refresh_token) of the client's session, or None."""
        session = self._client.auth.get_session()
        if session is None:
            return None
        return session.access_token, session.refresh_token

    def on_auth_state_change(self, callback):
        """Subscribes `callback(event, session)`; returns an object with `unsubscribe()`."""
        return self._client.auth.on_auth_state_change(callback)
