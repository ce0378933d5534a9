"""
Fernet encryption for secrets kept at rest, e.g. enrolled TOTP secrets
"""

import base64
import functools

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from src import settings
from src.common.exceptions import InternalException

KDF_ITERATIONS = 100_000


class DecryptionFailed(InternalException):
    default_detail = 'Stored secret could not be decrypted.'
    default_code = 'decryption_failed'


def derive_key(passphrase: str, salt: str) -> bytes:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt.encode('utf-8'), iterations=KDF_ITERATIONS)
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode('utf-8')))


@functools.lru_cache(maxsize=1)
def get_fernet() -> Fernet:
    """
    Derived once per process. The salt is fixed, a restarted process must
    read back what the previous one stored
    """
    if not settings.DB_ENCRYPTION_KEY:
        raise ValueError('DB_ENCRYPTION_KEY must be set, e.g. to the output of secrets.token_urlsafe(32)')

    return Fernet(derive_key(settings.DB_ENCRYPTION_KEY, settings.DB_ENCRYPTION_SALT))


def encrypt(plaintext: str) -> str:
    if not plaintext:
        return plaintext

    return get_fernet().encrypt(plaintext.encode('utf-8')).decode('utf-8')


def decrypt(ciphertext: str) -> str:
    """
    Raises DecryptionFailed when the key rotated or the value was tampered with
    """
    if not ciphertext:
        return ciphertext

    try:
        return get_fernet().decrypt(ciphertext.encode('utf-8')).decode('utf-8')
    except InvalidToken as exc:
        raise DecryptionFailed() from exc
