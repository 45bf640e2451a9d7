"""Database access for users, students and courses.

Every query here goes through SQLAlchemy expressions, so values are always
sent as bound parameters.
"""
import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.model import Course, LoginAttempt, Student, User, ROLE_USER

logger = logging.getLogger(__name__)

# largest value an INTEGER primary key can hold
MAX_PK = 2**63 - 1


class PersistenceError(Exception):
    """A store-layer failure. The message is safe to show; the cause is not."""

    def __init__(self, message="Operation failed. Please try again."):
        super().__init__(message)
        self.message = message


def _rollback(action):
    db.session.rollback()
    logger.exception("Database error during %s", action)


# -----------------------
# Students / courses
# -----------------------
def list_students():
    """All students with their course, ordered by id ascending.

    Course columns are None for students without a course.
    """
    stmt = (
        select(
            Student.id,
            Student.student_id,
            Student.fullname,
            Student.email,
            Course.course_code,
            Course.course_description,
        )
        .outerjoin(Course, Student.course_id == Course.id)
        .order_by(Student.id.asc())
    )
    try:
        return db.session.execute(stmt).mappings().all()
    except SQLAlchemyError as e:
        _rollback("list_students")
        raise PersistenceError() from e


def count_students():
    try:
        return db.session.execute(select(func.count(Student.id))).scalar_one()
    except SQLAlchemyError as e:
        _rollback("count_students")
        raise PersistenceError() from e


def list_courses():
    try:
        return db.session.execute(select(Course).order_by(Course.course_code)).scalars().all()
    except SQLAlchemyError as e:
        _rollback("list_courses")
        raise PersistenceError() from e


def delete_student(student_pk):
    """Delete one student by primary key.

    Returns True if a row was removed, False if there was nothing to delete.
    """
    if not 0 < student_pk <= MAX_PK:
        return False
    try:
        result = db.session.execute(delete(Student).where(Student.id == student_pk))
        db.session.commit()
    except SQLAlchemyError as e:
        _rollback("delete_student")
        raise PersistenceError() from e
    return result.rowcount == 1


# -----------------------
# Users
# -----------------------
def find_user_by_username(username):
    try:
        return db.session.execute(select(User).filter_by(username=username)).scalar_one_or_none()
    except SQLAlchemyError as e:
        _rollback("find_user_by_username")
        raise PersistenceError() from e


def user_exists(username, email):
    stmt = select(User.id).where(or_(User.username == username, User.email == email)).limit(1)
    try:
        return db.session.execute(stmt).first() is not None
    except SQLAlchemyError as e:
        _rollback("user_exists")
        raise PersistenceError() from e


def create_user(username, email, password, role=ROLE_USER):
    user = User(username=username, email=email, role=role)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        _rollback("create_user")
        raise PersistenceError() from e
    return user


def record_login_attempt(username, ip_address, success):
    # never raises; a failed audit write is only logged
    db.session.add(LoginAttempt(username=username[:50], ip_address=ip_address, success=success))
    try:
        db.session.commit()
    except SQLAlchemyError:
        _rollback("record_login_attempt")
