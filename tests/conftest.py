import pytest
from flask_login import login_user

from app import create_app
from competitions import create_competition
from extensions import bcrypt
from models import AdminUser, Group, Judge, Participant, User, db
from storage import PhotoStorage


ADMIN_PASSWORD = "admin-pass"
JUDGE_PASSWORD = "judge-pass"


class FakeBucket:
    def __init__(self, store, name):
        self.store = store
        self.name = name

    def upload(self, path, data, file_options=None):
        self.store.objects[path] = (data, file_options)
        return {"Key": path}

    def get_public_url(self, path):
        return f"https://example.supabase.co/storage/v1/object/public/{self.name}/{path}"

    def remove(self, paths):
        for path in paths:
            self.store.objects.pop(path, None)
        return paths


class FakeStorageApi:
    def __init__(self, store):
        self.store = store

    def from_(self, bucket):
        return FakeBucket(self.store, bucket)


class FakeSupabase:
    """Stands in for supabase.Client; only the storage calls PhotoStorage makes."""

    def __init__(self):
        self.objects = {}
        self.storage = FakeStorageApi(self)


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "BCRYPT_LOG_ROUNDS": 4,
        "DEFAULT_LOCALE": "en",
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def add_user(username, password, admin=False):
    user = User(username=username, password_hash=bcrypt.generate_password_hash(password).decode("utf-8"))
    db.session.add(user)
    db.session.commit()
    if admin:
        db.session.add(AdminUser(external_user_id=user.get_id(), name=username))
        db.session.commit()
    return user


def seed_competition(name="Spring Showcase", total_rounds=2, **fields):
    """Create a competition without going through the admin check."""
    form = {"name": name, "total_rounds": total_rounds}
    form.update(fields)
    return create_competition.__wrapped__(db.session, form)


def add_group(competition, name, **fields):
    group = Group(competition_id=competition.id, name=name, **fields)
    db.session.add(group)
    db.session.commit()
    return group


def add_participant(name, group=None):
    participant = Participant(name=name, group_id=group.id if group else None)
    db.session.add(participant)
    db.session.commit()
    return participant


def add_judge(competition, name="Judge Li", password=JUDGE_PASSWORD, **fields):
    judge = Judge(
        competition_id=competition.id,
        name=name,
        password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
        **fields,
    )
    db.session.add(judge)
    db.session.commit()
    return judge


@pytest.fixture
def admin_session(app):
    """Request context with an allow-listed admin signed in; yields db.session."""
    with app.test_request_context():
        login_user(add_user("admin", ADMIN_PASSWORD, admin=True))
        yield db.session


@pytest.fixture
def user_session(app):
    """Request context with a signed-in user who is not on the allow-list."""
    with app.test_request_context():
        login_user(add_user("visitor", "visitor-pass"))
        yield db.session


@pytest.fixture
def competition(admin_session):
    return seed_competition()


@pytest.fixture
def admin_client(app, client):
    with app.app_context():
        add_user("admin", ADMIN_PASSWORD, admin=True)
    response = client.post("/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def judge_client(app, client):
    """Client holding a judge_session cookie; returns (client, ids)."""
    with app.app_context():
        competition = seed_competition()
        judge = add_judge(competition)
        ids = {"competition_id": competition.id, "judge_id": judge.id,
               "round_ids": [r.id for r in competition.rounds]}
    response = client.post("/judge/login", json={"name": "Judge Li", "password": JUDGE_PASSWORD})
    assert response.status_code == 200
    return client, ids


@pytest.fixture
def fake_storage(app):
    storage = PhotoStorage(FakeSupabase(), "photos")
    app.extensions["photo_storage"] = storage
    return storage
