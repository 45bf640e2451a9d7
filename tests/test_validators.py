import pytest

from validators import ValidationError, check_password_policy, validate_registration


@pytest.mark.parametrize("password, reason", [
    ("alllowercase1!", "uppercase"),
    ("Password1", "special character"),
    ("Sh0rt!", "at least 8"),
    ("ALLUPPER1!", "lowercase"),
    ("NoDigits!!", "number"),
])
def test_password_policy_rejects(password, reason):
    with pytest.raises(ValidationError) as exc:
        check_password_policy(password)
    assert exc.value.field == "password"
    assert reason in exc.value.message


def test_password_policy_accepts():
    check_password_policy("Passw0rd!")
    check_password_policy('Quote"d1a')


def test_missing_fields_reported_first():
    with pytest.raises(ValidationError) as exc:
        validate_registration("", "bad", "x", "")
    assert exc.value.message == "Please fill in all fields."


@pytest.mark.parametrize("username", ["ab", "a" * 51, "bad-name", "has space", "ünï"])
def test_username_rules(username):
    with pytest.raises(ValidationError) as exc:
        validate_registration(username, "a@example.com", "Passw0rd!", "Passw0rd!")
    assert exc.value.field == "username"


@pytest.mark.parametrize("email", ["plainaddress", "a@b", "a b@example.com", "@example.com"])
def test_email_rules(email):
    with pytest.raises(ValidationError) as exc:
        validate_registration("good_name", email, "Passw0rd!", "Passw0rd!")
    assert exc.value.field == "email"


def test_confirmation_must_match():
    with pytest.raises(ValidationError) as exc:
        validate_registration("good_name", "a@example.com", "Passw0rd!", "Passw0rd?")
    assert exc.value.field == "confirm_password"


def test_username_checked_before_password():
    with pytest.raises(ValidationError) as exc:
        validate_registration("x", "a@example.com", "weak", "weak")
    assert exc.value.field == "username"


def test_valid_registration():
    validate_registration("new_user_1", "new@example.com", "Passw0rd!", "Passw0rd!")
