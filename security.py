# security.py: session guard, role policy and CSRF token lifecycle shared by every page.
import logging
import time
from functools import wraps

from flask import current_app, g, redirect, request, session, url_for
from flask_wtf.csrf import generate_csrf, validate_csrf
from wtforms import ValidationError as WTFValidationError

from models.model import ROLE_ADMIN, ROLE_USER

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TIMEOUT = 1800  # seconds of inactivity


# -----------------------
# Errors
# -----------------------
class AccessError(Exception):
    pass


class AuthenticationRequired(AccessError):
    pass


class SessionExpired(AccessError):
    pass


class AuthorizationDenied(AccessError):
    def __init__(self, action=None, role=None):
        super().__init__(f"role {role!r} may not {action!r}")
        self.action = action
        self.role = role


class CsrfRejected(AccessError):
    pass


# -----------------------
# Role policy
# -----------------------
PERMISSIONS = {
    "view_students": {ROLE_ADMIN, ROLE_USER},
    "delete_student": {ROLE_ADMIN},
    "backup": {ROLE_ADMIN},
}


def can(action, role):
    """Single authorization predicate; unknown actions are denied."""
    return role in PERMISSIONS.get(action, ())


# -----------------------
# Session guard
# -----------------------
class RequestContext:
    """Identity of the client making the current request."""

    def __init__(self, user, user_id, role, last_activity):
        self.user = user
        self.user_id = user_id
        self.role = role
        self.last_activity = last_activity

    def can(self, action):
        return can(action, self.role)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def __repr__(self):
        return f"<RequestContext {self.user} role={self.role}>"


class SessionGuard:
    """Authentication check plus sliding inactivity timeout over a session store."""

    def __init__(self, store, timeout=DEFAULT_SESSION_TIMEOUT, clock=time.time):
        self.store = store
        self.timeout = timeout
        self.clock = clock

    def check(self):
        if not self.store.get("user") or self.store.get("user_id") is None:
            raise AuthenticationRequired()

        now = self.clock()
        last = self.store.get("last_activity")
        if last is not None and (now - last) > self.timeout:
            user = self.store.get("user")
            self.store.clear()
            logger.info("Session for %s expired after %ds idle", user, int(now - last))
            raise SessionExpired()

        self.store["last_activity"] = now
        return RequestContext(
            user=self.store["user"],
            user_id=self.store["user_id"],
            role=self.store.get("role"),
            last_activity=now,
        )

    def start(self, user):
        # drop anything left from an earlier identity, CSRF token included
        self.store.clear()
        self.store["user"] = user.username
        self.store["user_id"] = user.id
        self.store["role"] = user.role
        self.store["last_activity"] = self.clock()

    def end(self):
        self.store.clear()


def session_guard():
    return SessionGuard(session, current_app.config.get("SESSION_TIMEOUT", DEFAULT_SESSION_TIMEOUT))


def login_required(f):
    """Run the session guard and pass the resulting RequestContext as the first argument."""
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            ctx = session_guard().check()
        except SessionExpired:
            return redirect(url_for("auth.login", timeout=1))
        except AuthenticationRequired:
            return redirect(url_for("auth.login"))
        return f(ctx, *args, **kwargs)
    return decorated


def permission_required(action):
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated(ctx, *args, **kwargs):
            if not ctx.can(action):
                logger.warning("Denied %s to %s (role=%s) on %s", action, ctx.user, ctx.role, request.path)
                raise AuthorizationDenied(action, ctx.role)
            return f(ctx, *args, **kwargs)
        return decorated
    return decorator


# -----------------------
# CSRF tokens
# -----------------------
class CsrfTokenService:
    """Per-session anti-forgery token.

    The raw token lives in the session; forms carry a signed copy. Matching is
    done by Flask-WTF with hmac.compare_digest.
    """

    @property
    def field_name(self):
        return current_app.config.get("WTF_CSRF_FIELD_NAME", "csrf_token")

    def issue(self):
        return generate_csrf()

    def validate(self, candidate):
        try:
            validate_csrf(candidate)
        except WTFValidationError as e:
            logger.warning("CSRF token rejected on %s: %s", request.path, e)
            return False
        return True

    def invalidate(self):
        session.pop(self.field_name, None)
        # generate_csrf caches the signed token on g for the rest of the request
        g.pop(self.field_name, None)

    def consume(self, candidate):
        """Validate and then invalidate, for forms that mutate state.

        The token is dropped whether or not it matched, so the page rendered
        in response carries a fresh one and a captured form cannot be replayed.
        """
        ok = self.validate(candidate)
        self.invalidate()
        if not ok:
            raise CsrfRejected()


csrf_tokens = CsrfTokenService()
