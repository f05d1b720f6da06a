import os, sys, pytest
# Ensure the backend directory is on path so 'personnel' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from personnel import create_app, get_db, load_models
from personnel.services.integrations import Integrations, InMemoryRoleStore, InMemoryIdentitySync, LocalBlobStore


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-123'})
    yield app


@pytest.fixture(autouse=True)
def integrations(app_instance, tmp_path):
    """Fresh in-memory collaborators per test."""
    fresh = Integrations(
        roles=InMemoryRoleStore(),
        identity=InMemoryIdentitySync(),
        blobs=LocalBlobStore(str(tmp_path / 'blobs')),
    )
    app_instance.extensions['personnel'] = fresh
    return fresh


@pytest.fixture(autouse=True)
def db(app_instance):
    """Empty schema per test, inside an application context."""
    with app_instance.app_context():
        session = get_db()
        engine = session.get_bind()
        Base = load_models()
        Base.metadata.create_all(engine)
        yield session
        session.rollback()
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
