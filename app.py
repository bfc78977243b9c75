import logging # Standard library logging; the level comes from LOG_LEVEL.
import os # Standard library for operating system interactions (e.g., creating directories).
from flask import Flask # The main Flask class.
from config import Config # Import the application's configuration class.
from extensions import csrf, login_manager, supabase_provider # Import initialized extensions.
from services.registration import expire_pending_uploads
from utils.helpers import get_identity_session, teardown_identity_session

# Application Factory Function
def create_app(config_class=Config):
    """
    Application factory for creating and configuring the portal.

    Args:
        config_class (type, optional): Configuration object; tests pass a subclass of Config.

    Raises:
        RuntimeError: If SUPABASE_URL or SUPABASE_ANON_KEY is missing.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)

    # --- Logging ---
    app.logger.setLevel(getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO))

    # --- Initialize Flask Extensions ---
    # Supabase first: missing backing-store configuration is fatal at startup.
    supabase_provider.init_app(app)
    csrf.init_app(app)
    login_manager.init_app(app)
    # Visitors without an identity are sent to the public page, which has the sign-in entry point.
    login_manager.login_view = 'main.index'
    login_manager.login_message_category = 'info'

    # The pending-upload folder holds accepted ID documents between wizard steps.
    if not app.config.get('PENDING_UPLOAD_FOLDER'):
        app.config['PENDING_UPLOAD_FOLDER'] = os.path.join(app.instance_path, 'pending_uploads')
    os.makedirs(app.config['PENDING_UPLOAD_FOLDER'], exist_ok=True)
    expire_pending_uploads(app.config['PENDING_UPLOAD_FOLDER'], app.permanent_session_lifetime.total_seconds())

    # --- Per-request identity ---
    # Each request builds its own IdentitySession lazily (utils.helpers.get_identity_session);
    # this hook unsubscribes it from auth notifications when the app context ends.
    app.teardown_appcontext(teardown_identity_session)

    # --- Import and Register Blueprints ---
    from routes.main import main_bp
    from routes.auth import auth_bp
    from routes.dashboard import dashboard_bp
    from routes.admin import admin_bp

    app.register_blueprint(main_bp)      # Public page and join requests.
    app.register_blueprint(auth_bp)      # /auth/... registration wizard and sign-in.
    app.register_blueprint(dashboard_bp) # /dashboard member dashboard.
    app.register_blueprint(admin_bp)     # /admin admin dashboard.

    # --- Flask-Login User Loader ---
    # Flask-Login keeps only the id in the cookie; the identity itself is whatever the request's
    # IdentitySession resolved from the Supabase tokens.
    @login_manager.user_loader
    def load_user(user_id):
        identity = get_identity_session().identity
        if identity is not None and identity.id == user_id:
            return identity
        return None

    return app

# This block allows running the Flask development server directly using `python app.py`.
if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
