import re

import pytest
from itsdangerous import URLSafeTimedSerializer

from app import create_app
from extensions import db
from models.model import Course, Student, User

ADMIN_PASSWORD = "Adm1n!pass"
USER_PASSWORD = "Us3r!pass"

CSRF_RE = re.compile(r'name="csrf_token" value="([^"]+)"')


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "RATELIMIT_ENABLED": False,
        "BACKUP_DIR": str(tmp_path / "backups"),
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seeded(app):
    """Two courses, three students (one without a course), an admin and a plain user."""
    with app.app_context():
        cs = Course(course_code="BSCS", course_description="Computer Science")
        it = Course(course_code="BSIT", course_description="Information Technology")
        db.session.add_all([cs, it])
        db.session.flush()
        db.session.add_all([
            Student(student_id="2024-003", fullname="Carla Reyes", email="carla@example.com", course_id=it.id),
            Student(student_id="2024-001", fullname="Ana Cruz", email="ana@example.com", course_id=cs.id),
            Student(student_id="2024-002", fullname="Ben Lim", email="ben@example.com", course_id=None),
        ])
        admin = User(username="admin", email="admin@example.com", role="admin")
        admin.set_password(ADMIN_PASSWORD)
        viewer = User(username="viewer", email="viewer@example.com", role="user")
        viewer.set_password(USER_PASSWORD)
        db.session.add_all([admin, viewer])
        db.session.commit()
    return app


def csrf_from(response):
    match = CSRF_RE.search(response.get_data(as_text=True))
    assert match, "no csrf_token field in page"
    return match.group(1)


def forge_csrf(app, client, raw="raw-test-token"):
    """Put a known raw token in the client's session and return its signed form value."""
    with client.session_transaction() as sess:
        sess["csrf_token"] = raw
    return URLSafeTimedSerializer(app.secret_key, salt="wtf-csrf-token").dumps(raw)


def login(client, username, password):
    token = csrf_from(client.get("/login"))
    return client.post("/login", data={"username": username, "password": password, "csrf_token": token})


@pytest.fixture
def admin_client(seeded, client):
    resp = login(client, "admin", ADMIN_PASSWORD)
    assert resp.status_code == 302
    return client


@pytest.fixture
def user_client(seeded, client):
    resp = login(client, "viewer", USER_PASSWORD)
    assert resp.status_code == 302
    return client


def student_count(app):
    with app.app_context():
        return db.session.query(Student).count()
