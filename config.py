import os # For accessing environment variables.

class Config:
    """
    Configuration class for the Flask application.

    Loads settings from environment variables, with sensible defaults for development where applicable.
    The two Supabase values have no fallback: the portal cannot do anything without its backing store,
    so `create_app` refuses to start when either is missing.
    """

    # --- General Flask Configuration ---
    # Secret key for session signing and CSRF protection.
    # CRITICAL: Should be a long, random string and kept secret in production.
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'a-very-complex-and-unguessable-secret-key-for-dev'

    # --- Supabase (backing store: auth, tables, file storage) ---
    # Project URL, e.g. 'https://xyzcompany.supabase.co'. Required.
    SUPABASE_URL = os.environ.get('SUPABASE_URL', '')
    # Public anon key. Row-level security on the project decides what each signed-in user may touch. Required.
    SUPABASE_ANON_KEY = os.environ.get('SUPABASE_ANON_KEY', '')

    # --- Fernet Key for Encryption ---
    # Used to encrypt the Supabase access/refresh tokens and the in-progress registration draft
    # before they are placed in the (signed, but readable) Flask session cookie.
    # Generate using `from cryptography.fernet import Fernet; Fernet.generate_key().decode()`.
    FERNET_KEY = os.environ.get('FERNET_KEY', '').encode('utf-8') # Ensure it's bytes

    # --- File uploads ---
    # Storage bucket that receives ID documents and payment screenshots.
    UPLOAD_BUCKET = os.environ.get('UPLOAD_BUCKET', 'uploads')
    # Local folder holding an accepted ID document between wizard steps.
    # None means "<instance_path>/pending_uploads", resolved in create_app.
    PENDING_UPLOAD_FOLDER = os.environ.get('PENDING_UPLOAD_FOLDER')
    # 5 MiB limit for ID documents.
    MAX_UPLOAD_BYTES = 5 * 1024 * 1024
    ALLOWED_UPLOAD_MIME_TYPES = ('image/jpeg', 'image/png', 'application/pdf')
    # Hard cap on request bodies so an oversized upload never reaches the view.
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024

    # --- Payments (display only, no processing) ---
    UPI_ID = os.environ.get('UPI_ID', 'nerdshive@paytm')

    # --- Admin two-factor step ---
    # The code is a demo fixture shown on the admin sign-in page, not a secret.
    ADMIN_TWO_FACTOR_REQUIRED = os.environ.get('ADMIN_TWO_FACTOR_REQUIRED', 'true').lower() in ('1', 'true', 'yes')
    ADMIN_TWO_FACTOR_CODE = os.environ.get('ADMIN_TWO_FACTOR_CODE', '123456')

    # --- Logging Configuration ---
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
