import os, sys, itertools, pytest
# Ensure the backend directory is on path so 'storeroom' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from storeroom import create_app, get_db
from storeroom.models.authz import Base, User, Location, Group, UserGroup
# Import all model modules to ensure tables are registered before create_all
import storeroom.models.custom_role  # noqa: F401
import storeroom.models.audit  # noqa: F401

_seq = itertools.count(1)


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'DATABASE_URL': 'sqlite+pysqlite:///:memory:'})
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def session(app_instance):
    s = get_db()
    # Clean state if a prior test left the session mid-transaction
    s.rollback()
    return s


@pytest.fixture()
def make_location(session):
    def _make(parent=None, name=None):
        n = next(_seq)
        loc = Location(name=name or f'Location {n}', code=f'LOC{n}', parent_id=parent.id if parent else None)
        session.add(loc)
        session.commit()
        return loc
    return _make


@pytest.fixture()
def make_user(session):
    """Create a user with a unique email; password is always 'pw'."""
    def _make(role=None, groups=(), location=None, is_superuser=False, is_main_store_incharge=False):
        n = next(_seq)
        user = User(
            name=f'User {n}', email=f'user{n}@test.local', password_hash='',
            role=role.value if hasattr(role, 'value') else role,
            responsible_location_id=location.id if location else None,
            is_superuser=is_superuser, is_main_store_incharge=is_main_store_incharge,
        )
        user.set_password('pw')
        session.add(user)
        session.flush()
        for name in groups:
            grp = session.query(Group).filter_by(name=name).one_or_none()
            if not grp:
                grp = Group(name=name)
                session.add(grp); session.flush()
            session.add(UserGroup(user_id=user.id, group_id=grp.id))
        session.commit()
        return user
    return _make


@pytest.fixture()
def auth_headers(client):
    def _headers(user):
        resp = client.post('/iam/auth/login', json={'email': user.email, 'password': 'pw'})
        assert resp.status_code == 200, resp.get_json()
        return {'Authorization': f"Bearer {resp.get_json()['access_token']}"}
    return _headers
