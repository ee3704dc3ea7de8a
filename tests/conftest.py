import pytest
from fastapi.testclient import TestClient

from school_admin.auth import jwt_handler
from school_admin.core import config
from school_admin.database import ConnectionManager, init_schema
from school_admin.main import create_app
from school_admin.store.record_store import RecordStore
from school_admin.store.user_store import UserStore

TEST_BCRYPT_ROUNDS = 4
TEST_PASSWORD = 'Secret123'


@pytest.fixture(autouse=True)
def fast_test_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'BCRYPT_ROUNDS', TEST_BCRYPT_ROUNDS)
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'test-secret-key-for-the-school-admin-suite')
    monkeypatch.setattr(config, 'APP_ENV', 'test')


@pytest.fixture
def make_db(tmp_path):
    managers = []

    def _make_db(**pool_options) -> ConnectionManager:
        options = {'pool_size': 5, 'max_overflow': 0, 'pool_timeout': 1, 'idle_timeout': 0, 'max_uses': 0, 'echo': False}
        options.update(pool_options)
        manager = ConnectionManager.from_url(f"sqlite:///{tmp_path / 'school.db'}", **options)
        managers.append(manager)
        return manager

    yield _make_db
    for manager in managers:
        manager.dispose()


@pytest.fixture
def db(make_db) -> ConnectionManager:
    manager = make_db()
    init_schema(manager.engine)
    return manager


@pytest.fixture
def records(db) -> RecordStore:
    return RecordStore(db)


@pytest.fixture
def users(db) -> UserStore:
    return UserStore(db)


@pytest.fixture
def client(db):
    app = create_app(db=db, create_schema=False)
    return TestClient(app)


@pytest.fixture
def make_user(users):
    def _make_user(username: str, role: str = 'teacher', **overrides) -> dict:
        data = {
            'username': username,
            'email': f'{username}@school.test',
            'full_name': username.title(),
            'role': role,
            'is_active': True,
            'password': TEST_PASSWORD,
        }
        data.update(overrides)
        return users.create(data)

    return _make_user


@pytest.fixture
def auth_header():
    def _auth_header(user: dict) -> dict[str, str]:
        return {'Authorization': f"Bearer {jwt_handler.create_access_token(subject=user['id'])}"}

    return _auth_header
