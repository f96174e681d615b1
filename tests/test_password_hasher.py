import pytest

from authflow.application.services.password_hasher import PasswordHasher, password_policy_violation


@pytest.mark.parametrize(
    "password, expected",
    [
        ("", "Password must be at least 8 characters long"),
        ("Ab1!", "Password must be at least 8 characters long"),
        ("alllowercase1!", "Password must contain at least one uppercase letter"),
        ("ALLUPPER1!", "Password must contain at least one lowercase letter"),
        ("NoDigits!!", "Password must contain at least one number"),
        ("NoSpecial123", "Password must contain at least one special character"),
        (
            "lowercaseonly",
            "Password must contain at least one uppercase letter, one number and one special character",
        ),
    ],
)
def test_policy_reports_missing_character_classes(password, expected):
    assert password_policy_violation(password) == expected


def test_policy_accepts_compliant_password():
    assert password_policy_violation("Secret#123") is None


def test_hash_is_salted_and_verifies():
    hasher = PasswordHasher(rounds=4)

    first = hasher.hash("Secret#123")
    second = hasher.hash("Secret#123")

    assert first != second
    assert "Secret#123" not in first
    assert hasher.verify("Secret#123", first)
    assert hasher.verify("Secret#123", second)
    assert not hasher.verify("Secret#124", first)


def test_verify_handles_long_passwords_and_bad_hashes():
    hasher = PasswordHasher(rounds=4)
    long_password = "Aa1!" + "x" * 100
    hashed = hasher.hash(long_password)

    assert hasher.verify(long_password, hashed)
    assert not hasher.verify(long_password[:-1], hashed)
    assert not hasher.verify("Secret#123", "not-a-bcrypt-hash")
    assert not hasher.verify("", hashed)
