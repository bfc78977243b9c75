import os # For splitting the extension off uploaded file names.
import secrets # Random suffix of generated storage object names.
import time # Millisecond timestamp prefix of generated storage object names.

from flask import g, request, session # Request-scoped globals, host URL, and the signed session cookie.
# Local imports of urlparse/urljoin and of the services are done inside the functions that use them:
# services.api imports make_storage_name from this module, so importing it here at module level would be circular.

_BASE36_DIGITS = '0123456789abcdefghijklmnopqrstuvwxyz'

def is_safe_url(target):
    """
    Checks if a target URL is safe for redirection.
    A URL is considered safe if it has a scheme of 'http' or 'https'
    and its network location matches the application's host.

    Args:
        target (str or None): The URL to check. Can be relative or absolute.

    Returns:
        bool: True if the target URL is safe, False otherwise.
    """
    if target is None or not isinstance(target, str):
        return False

    from urllib.parse import urlparse, urljoin

    ref_url = urlparse(request.host_url)
    # Relative targets are resolved against the host before comparing.
    test_url = urlparse(urljoin(request.host_url, target))
    return test_url.scheme in ('http', 'https') and ref_url.netloc == test_url.netloc

def _to_base36(number):
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return ''.join(reversed(digits))

def make_storage_name(filename, now_ms=None):
    """
    Generates the object name an upload is stored under: '<ms-timestamp>-<random>.<ext>'.

    Only the extension of the original name survives, lowercased. Names never collide in
    practice, which also means retrying an upload stores a second object.

    Args:
        filename (str): Original file name, e.g. 'Aadhaar Card.PDF'.
        now_ms (int, optional): Timestamp to use instead of the current time.

    Returns:
        str: e.g. '1718000000000-k3j9x0q2lm.pdf'.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = _to_base36(secrets.randbelow(36 ** 10)).rjust(10, '0')
    extension = os.path.splitext(filename or '')[1].lstrip('.').lower()
    name = f"{now_ms}-{suffix}"
    return f"{name}.{extension}" if extension else name

def get_identity_session():
    """
    Returns the IdentitySession of the current request, building it on first use.

    The session gets its own Supabase client (so identities never leak between browsers),
    is initialized from the tokens stored in the Flask session, and is torn down by
    `teardown_identity_session` when the app context ends.

    Returns:
        services.session.IdentitySession: Initialized session for this request.
    """
    if 'identity_session' not in g:
        from extensions import supabase_provider
        from services.api import PortalAPI
        from services.auth import AuthService
        from services.session import IdentitySession, SessionTokenStore

        client = supabase_provider.client()
        auth = AuthService(client, PortalAPI(client))
        g.identity_session = IdentitySession(auth, SessionTokenStore(session)).init()
    return g.identity_session

def get_api():
    """The data access façade bound to the current request's Supabase client."""
    return get_identity_session().api

def teardown_identity_session(exception=None):
    """App-context teardown hook: unsubscribes the request's session from auth notifications."""
    identity_session = g.pop('identity_session', None)
    if identity_session is not None:
        identity_session.teardown()
