from flask_login import LoginManager    # Manages user sessions for login and logout functionality.
from flask_wtf.csrf import CSRFProtect   # CSRF protection for every POST form.
from supabase import create_client      # Supabase client factory (tables, storage, auth).

# Initialize Flask-Login's LoginManager.
# The user loader (see app.py) reads the identity resolved for the current request,
# and login_view is where the gate sends visitors with no identity.
login_manager = LoginManager()

# Initialize CSRF protection. FlaskForm instances validate the token automatically;
# it is disabled in tests through WTF_CSRF_ENABLED = False.
csrf = CSRFProtect()


class SupabaseProvider:
    """
    Flask-style extension that hands out Supabase clients.

    A new client is created for every request: the Supabase auth client keeps the signed-in
    session on the client object itself, so sharing one client between browsers would share
    their identities. Configuration is checked once, in init_app.
    """

    def __init__(self, app=None):
        self.url = None
        self.key = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """
        Reads SUPABASE_URL / SUPABASE_ANON_KEY from the app config.

        Raises:
            RuntimeError: If either value is missing. This is the one fatal startup condition of the portal.
        """
        url = app.config.get('SUPABASE_URL')
        key = app.config.get('SUPABASE_ANON_KEY')
        if not url or not key:
            app.logger.critical("SUPABASE_URL and SUPABASE_ANON_KEY must both be configured.")
            raise RuntimeError("Missing Supabase configuration: set SUPABASE_URL and SUPABASE_ANON_KEY.")
        self.url = url
        self.key = key
        app.extensions['supabase_provider'] = self

    def client(self):
        """Creates a fresh Supabase client for the configured project."""
        if not self.url or not self.key:
            raise RuntimeError("SupabaseProvider used before init_app().")
        return create_client(self.url, self.key)


# Initialized with the app in create_app; views obtain clients through utils.helpers.
supabase_provider = SupabaseProvider()
