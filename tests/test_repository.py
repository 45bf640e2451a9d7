import pytest
from sqlalchemy.exc import IntegrityError

import repository
from extensions import db
from models.model import Course, LoginAttempt, Student, User


def test_list_students_ordered_with_left_join(seeded):
    with seeded.app_context():
        rows = repository.list_students()
    assert [r["id"] for r in rows] == sorted(r["id"] for r in rows)
    by_sid = {r["student_id"]: r for r in rows}
    assert by_sid["2024-001"]["course_code"] == "BSCS"
    assert by_sid["2024-003"]["course_description"] == "Information Technology"
    assert by_sid["2024-002"]["course_code"] is None
    assert by_sid["2024-002"]["course_description"] is None


def test_list_students_empty(app):
    with app.app_context():
        assert repository.list_students() == []
        assert repository.count_students() == 0


def test_delete_student_is_idempotent(seeded):
    with seeded.app_context():
        target = db.session.query(Student).filter_by(student_id="2024-001").one().id
        before = repository.count_students()
        assert repository.delete_student(target) is True
        assert repository.count_students() == before - 1
        assert repository.delete_student(target) is False
        assert repository.delete_student(999999) is False
        assert repository.delete_student(int("9" * 30)) is False
        assert repository.delete_student(repository.MAX_PK + 1) is False
        assert repository.count_students() == before - 1


def test_list_courses(seeded):
    with seeded.app_context():
        assert [c.course_code for c in repository.list_courses()] == ["BSCS", "BSIT"]


def test_create_user_hashes_password(app):
    with app.app_context():
        user = repository.create_user("new_user", "new@example.com", "Passw0rd!")
        assert user.role == "user"
        assert user.password_hash != "Passw0rd!"
        assert user.check_password("Passw0rd!")
        assert not user.check_password("passw0rd!")


def test_user_exists_matches_either_field(seeded):
    with seeded.app_context():
        assert repository.user_exists("admin", "nobody@example.com")
        assert repository.user_exists("nobody", "admin@example.com")
        assert not repository.user_exists("nobody", "nobody@example.com")


def test_duplicate_user_raises_persistence_error(seeded):
    with seeded.app_context():
        with pytest.raises(repository.PersistenceError) as exc:
            repository.create_user("admin", "other@example.com", "Passw0rd!")
        assert exc.value.message == "Operation failed. Please try again."
        assert isinstance(exc.value.__cause__, IntegrityError)
        # session is usable again after the rollback
        assert repository.find_user_by_username("admin") is not None


def test_record_login_attempt(app):
    with app.app_context():
        repository.record_login_attempt("someone", "10.0.0.1", False)
        attempt = db.session.query(LoginAttempt).one()
        assert attempt.username == "someone"
        assert attempt.ip_address == "10.0.0.1"
        assert attempt.success is False


def test_course_foreign_key_enforced(app):
    with app.app_context():
        db.session.add(Student(student_id="X-1", fullname="Ghost", email="g@example.com", course_id=42))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()


def test_deleting_course_keeps_student(seeded):
    with seeded.app_context():
        course = db.session.query(Course).filter_by(course_code="BSCS").one()
        db.session.delete(course)
        db.session.commit()
        ana = db.session.query(Student).filter_by(student_id="2024-001").one()
        assert ana.course_id is None
        assert db.session.query(User).count() == 2
