# memberhub/encryption/password_hashing.py

import secrets

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError, VerifyMismatchError

MIN_PASSWORD_LENGTH = 8

# Password hashing and verification using Argon2id (memory-hard, salted)


class PasswordHashingService:
    def __init__(self):
        self.ph = PasswordHasher(
            time_cost=3,
            memory_cost=65536,
            parallelism=4,
            hash_len=32,
            salt_len=16,
        )
        # Verified against when the account does not exist, so that unknown
        # DNIs cost the same as wrong passwords
        self._dummy_hash = self.ph.hash(secrets.token_urlsafe(16))

    def hash_password(self, password: str) -> str:
        try:
            return self.ph.hash(password)
        except HashingError as e:
            raise ValueError(f"Password hashing failed: {str(e)}")

    def verify_password(self, password: str, hash_value: str) -> bool:
        try:
            return self.ph.verify(hash_value, password)
        except VerifyMismatchError:
            return False
        except (VerificationError, InvalidHashError):
            return False

    def burn_verification(self, password: str) -> None:
        self.verify_password(password or '', self._dummy_hash)

    def needs_rehash(self, hash_value: str) -> bool:
        return self.ph.check_needs_rehash(hash_value)

    def is_strong_password(self, password) -> bool:
        return isinstance(password, str) and len(password) >= MIN_PASSWORD_LENGTH

    def generate_temp_password(self, length=12) -> str:
        """Numeric temporary password handed out by padron imports."""
        return ''.join(str(secrets.randbelow(10)) for _ in range(length))
