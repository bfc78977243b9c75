import json # Session payloads are serialized to JSON before encryption.

from cryptography.fernet import Fernet # Symmetric encryption for values kept in the session cookie.
from flask import current_app # FERNET_KEY lives in the application config.

def get_fernet():
    """
    Builds the Fernet cipher from the application's FERNET_KEY.

    The Flask session cookie is signed but readable by the browser, so anything sensitive
    placed in it (Supabase tokens, the registration draft with its password) goes through here.

    Raises:
        ValueError: If FERNET_KEY is not configured.

    Returns:
        cryptography.fernet.Fernet: Cipher for the configured key.
    """
    key = current_app.config.get('FERNET_KEY')
    if not key:
        current_app.logger.critical("FERNET_KEY is not configured; session values cannot be encrypted.")
        raise ValueError("FERNET_KEY not configured properly. Please set it in your application configuration.")
    if isinstance(key, str):
        key = key.encode('utf-8') # Accept keys given as text in test or instance config.
    return Fernet(key)

def encrypt_token(token):
    """
    Encrypts a plain-text value.

    Args:
        token (str or None): Value to encrypt. None is passed through.

    Returns:
        str or None: Fernet token as text, ready to be stored in the session.
    """
    if token is None:
        return None
    return get_fernet().encrypt(token.encode('utf-8')).decode('utf-8')

def decrypt_token(encrypted_token):
    """
    Reverses encrypt_token.

    Args:
        encrypted_token (str or None): Fernet token as text. None is passed through.

    Returns:
        str or None: The original plain text.

    Raises:
        cryptography.fernet.InvalidToken: Wrong key, tampered or malformed value. Callers decide
                                          whether to discard the value.
    """
    if encrypted_token is None:
        return None
    return get_fernet().decrypt(encrypted_token.encode('utf-8')).decode('utf-8')

def encrypt_payload(payload):
    """Serializes a JSON-compatible dict and encrypts it."""
    return encrypt_token(json.dumps(payload))

def decrypt_payload(encrypted_payload):
    """
    Decrypts a value produced by encrypt_payload.

    Raises:
        cryptography.fernet.InvalidToken: See decrypt_token.
        ValueError: If the decrypted text is not JSON.
    """
    text = decrypt_token(encrypted_payload)
    return None if text is None else json.loads(text)
