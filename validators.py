import re

USERNAME_RE = re.compile(r"[A-Za-z0-9_]{3,50}")
EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")
PASSWORD_SYMBOLS = '!@#$%^&*(),.?":{}|<>'
MIN_PASSWORD_LENGTH = 8


class ValidationError(Exception):
    def __init__(self, field, message):
        super().__init__(message)
        self.field = field
        self.message = message


def check_password_policy(password):
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    if not re.search(r"[A-Z]", password):
        raise ValidationError("password", "Password must contain at least one uppercase letter.")
    if not re.search(r"[a-z]", password):
        raise ValidationError("password", "Password must contain at least one lowercase letter.")
    if not re.search(r"[0-9]", password):
        raise ValidationError("password", "Password must contain at least one number.")
    if not any(ch in PASSWORD_SYMBOLS for ch in password):
        raise ValidationError("password", f"Password must contain at least one special character ({PASSWORD_SYMBOLS}).")


def validate_registration(username, email, password, confirm):
    """Check a registration form in order; raise ValidationError on the first failure."""
    if not username or not email or not password or not confirm:
        raise ValidationError(None, "Please fill in all fields.")
    if not USERNAME_RE.fullmatch(username):
        raise ValidationError("username", "Username must be 3-50 characters (letters, numbers, underscores only).")
    if len(email) > 100 or not EMAIL_RE.fullmatch(email):
        raise ValidationError("email", "Please enter a valid email address.")
    check_password_policy(password)
    if password != confirm:
        raise ValidationError("confirm_password", "Passwords do not match.")
