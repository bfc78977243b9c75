import pytest
from cryptography.fernet import Fernet

from app import create_app
from config import Config
from fake_supabase import FakeSupabase

class TestConfig(Config):
    TESTING = True
    WTF_CSRF_ENABLED = False # Disable CSRF for form testing convenience
    SECRET_KEY = 'test-secret-key-for-forms' # Flask session and Flask-Login require a SECRET_KEY
    SUPABASE_URL = 'https://fake.supabase.co'
    SUPABASE_ANON_KEY = 'test-anon-key'
    # A valid URL-safe base64-encoded 32-byte key for the session encryption helpers.
    FERNET_KEY = Fernet.generate_key()
    ADMIN_TWO_FACTOR_REQUIRED = True
    ADMIN_TWO_FACTOR_CODE = '123456'

@pytest.fixture(scope='function')
def supabase(mocker):
    """
    In-memory Supabase project. Every client the app creates (one per request) talks to it,
    like separate connections to one hosted project.
    """
    project = FakeSupabase()
    mocker.patch('extensions.create_client', side_effect=lambda url, key: project.client())
    return project

@pytest.fixture(scope='function')
def app(supabase, tmp_path):
    """
    Function-scoped test application with TestConfig and a temporary pending-upload folder.
    """
    config_class = type('PerTestConfig', (TestConfig,), {'PENDING_UPLOAD_FOLDER': str(tmp_path / 'pending')})
    return create_app(config_class=config_class)

@pytest.fixture(scope='function')
def app_context(app):
    """
    Pushes an app context for tests that use `current_app` (e.g. the Fernet helpers).
    """
    with app.app_context():
        yield

@pytest.fixture(scope='function')
def client(app):
    """Test client for making requests to the application."""
    return app.test_client()

@pytest.fixture
def member(supabase):
    """An approved member: (email, password)."""
    supabase.add_identity('asha@nerdshive.in', password='member123', full_name='Asha Rao',
                          phone='9876543210', status='approved')
    return 'asha@nerdshive.in', 'member123'

@pytest.fixture
def pending_member(supabase):
    supabase.add_identity('ravi@nerdshive.in', password='pending123', full_name='Ravi Kumar', status='pending')
    return 'ravi@nerdshive.in', 'pending123'

@pytest.fixture
def admin(supabase):
    supabase.add_identity('admin@nerdshive.com', password='admin123', full_name='Hive Admin',
                          role='admin', status='approved')
    return 'admin@nerdshive.com', 'admin123'

def sign_in(client, email, password):
    """Signs in through the member sign-in form."""
    return client.post('/auth/login', data={'email': email, 'password': password})

def sign_in_admin(client, email, password, code='123456'):
    """Signs in through the admin sign-in form and passes the two-factor step."""
    client.post('/auth/admin/login', data={'email': email, 'password': password})
    return client.post('/auth/admin/verify', data={'code': code})
