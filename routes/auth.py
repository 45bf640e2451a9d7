# routes/auth.py
import logging

from flask import Blueprint, render_template, request, redirect, url_for, flash, session, current_app
from werkzeug.security import check_password_hash, generate_password_hash

import repository
from extensions import limiter
from repository import PersistenceError
from security import CsrfRejected, csrf_tokens, session_guard
from validators import ValidationError, validate_registration

auth_bp = Blueprint('auth', __name__, url_prefix='')
logger = logging.getLogger(__name__)

LOGIN_FAILED = "Invalid username or password."
INVALID_REQUEST = "Invalid request. Please try again."
ALREADY_EXISTS = "Username or email already exists."
TIMEOUT_NOTICE = "Your session has expired. Please log in again."

# checked against when the username is unknown, so every failed login costs one hash comparison
_DUMMY_HASH = generate_password_hash("unknown-user-placeholder")


def _login_rate_limit():
    return current_app.config.get("LOGIN_RATE_LIMIT", "10 per minute")


@auth_bp.route("/login", methods=["GET", "POST"])
@limiter.limit(_login_rate_limit, methods=["POST"])
def login():
    if request.method == "GET":
        if 'user' in session:
            return redirect(url_for('dashboard.index'))
        notice = TIMEOUT_NOTICE if request.args.get("timeout") else None
        return render_template('login.html', notice=notice)

    # POST
    username = request.form.get("username", "").strip()
    password = request.form.get("password", "")

    if not csrf_tokens.validate(request.form.get(csrf_tokens.field_name)):
        return render_template('login.html', error=INVALID_REQUEST, username=username), 400

    if not username or not password:
        return render_template('login.html', error="Please enter username and password.", username=username)

    try:
        user = repository.find_user_by_username(username)
    except PersistenceError as e:
        return render_template('login.html', error=e.message, username=username), 500

    if user is None:
        check_password_hash(_DUMMY_HASH, password)
        ok = False
    else:
        ok = user.check_password(password)

    repository.record_login_attempt(username, request.remote_addr, ok)
    if not ok:
        logger.info("Failed login for %r from %s", username, request.remote_addr)
        return render_template('login.html', error=LOGIN_FAILED, username=username), 401

    session_guard().start(user)
    logger.info("User %s (role=%s) logged in from %s", user.username, user.role, request.remote_addr)
    return redirect(url_for('dashboard.index'))


@auth_bp.route("/logout", methods=["POST"])
def logout():
    if not csrf_tokens.validate(request.form.get(csrf_tokens.field_name)):
        return redirect(url_for('dashboard.index'))
    user = session.get('user')
    session_guard().end()
    if user:
        logger.info("User %s logged out", user)
    return redirect(url_for('auth.login'))


@auth_bp.route("/register", methods=["GET", "POST"])
def register():
    if 'user' in session:
        return redirect(url_for('dashboard.index'))

    if request.method == "GET":
        return render_template("register.html")

    # POST
    username = request.form.get("username", "").strip()
    email = request.form.get("email", "").strip()
    password = request.form.get("password", "")
    form = {"username": username, "email": email}

    try:
        csrf_tokens.consume(request.form.get(csrf_tokens.field_name))
        validate_registration(username, email, password, request.form.get("confirm_password", ""))
        if repository.user_exists(username, email):
            logger.info("Registration rejected for %r: username or email taken", username)
            return render_template("register.html", error=ALREADY_EXISTS, **form), 409
        repository.create_user(username, email, password)
    except CsrfRejected:
        return render_template("register.html", error=INVALID_REQUEST, **form), 400
    except ValidationError as e:
        return render_template("register.html", error=e.message, error_field=e.field, **form), 400
    except PersistenceError:
        return render_template("register.html", error="Registration failed. Please try again.", **form), 500

    logger.info("Registered new user %s", username)
    flash("Registration successful! You can now login.", "success")
    return redirect(url_for("auth.login"))
