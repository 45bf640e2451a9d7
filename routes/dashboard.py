# routes/dashboard.py
import logging

from flask import Blueprint, render_template, redirect, request, url_for

import repository
from repository import PersistenceError
from security import CsrfRejected, csrf_tokens, permission_required

dashboard_bp = Blueprint('dashboard', __name__)
logger = logging.getLogger(__name__)

ACCESS_DENIED = "Access denied."


@dashboard_bp.route('/')
def root():
    return redirect(url_for('dashboard.index'))


def _render(ctx, msg=None, status=200):
    try:
        students = repository.list_students()
    except PersistenceError as e:
        students = []
        msg = msg or e.message
        status = 500
    return render_template('dashboard.html', ctx=ctx, students=students, msg=msg), status


def _delete(ctx):
    """Handle the delete form; returns (message, status)."""
    try:
        csrf_tokens.consume(request.form.get(csrf_tokens.field_name))
    except CsrfRejected:
        return ACCESS_DENIED, 403

    if not ctx.can("delete_student"):
        logger.warning("Delete refused for %s (role=%s)", ctx.user, ctx.role)
        return ACCESS_DENIED, 403

    try:
        student_pk = int(request.form.get("student_id", ""))
    except ValueError:
        return "Invalid student id.", 400
    if student_pk <= 0:
        return "Invalid student id.", 400

    try:
        deleted = repository.delete_student(student_pk)
    except PersistenceError as e:
        return e.message, 500

    if not deleted:
        return "Student not found.", 200
    logger.info("Student %d deleted by %s", student_pk, ctx.user)
    return "Student deleted successfully.", 200


@dashboard_bp.route('/dashboard', methods=['GET', 'POST'])
@permission_required("view_students")
def index(ctx):
    if request.method == 'POST':
        return _render(ctx, *_delete(ctx))
    return _render(ctx)
