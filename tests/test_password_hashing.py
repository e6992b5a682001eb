import pytest
from memberhub.encryption.password_hashing import PasswordHashingService


@pytest.fixture(scope="module")
def password_service():
    return PasswordHashingService()


def test_hash_and_verify_password(password_service):
    password = "StrongPass123!"
    hashed = password_service.hash_password(password)

    # Verify the original password works
    assert password_service.verify_password(password, hashed) is True

    # Wrong password should fail
    assert password_service.verify_password("WrongPass456!", hashed) is False

    # Check if hash needs rehash (should be False immediately)
    assert password_service.needs_rehash(hashed) is False


def test_hashes_are_salted_argon2id(password_service):
    first = password_service.hash_password("SamePassword1")
    second = password_service.hash_password("SamePassword1")
    assert first != second
    assert first.startswith("$argon2id$")


def test_verify_against_garbage_hash_is_false(password_service):
    assert password_service.verify_password("whatever1", "not-a-hash") is False


def test_burn_verification_never_raises(password_service):
    password_service.burn_verification("anything")
    password_service.burn_verification(None)


def test_is_strong_password(password_service):
    assert password_service.is_strong_password("12345678") is True
    assert password_service.is_strong_password("MyStrongPass123!") is True

    # Too short
    assert password_service.is_strong_password("short1!") is False
    assert password_service.is_strong_password(None) is False


def test_generate_temp_password(password_service):
    password = password_service.generate_temp_password()
    assert len(password) == 12
    assert password.isdigit()
