import pyotp
import pytest
from cryptography.fernet import Fernet, InvalidToken

from src.common.encryption import DecryptionFailed, decrypt, derive_key, encrypt, get_fernet


def test_key_derivation_is_deterministic():
    # Secrets stored by one process must be readable by the next
    secret = b'JBSWY3DPEHPK3PXP'
    token = Fernet(derive_key('passphrase', 'salt')).encrypt(secret)

    assert Fernet(derive_key('passphrase', 'salt')).decrypt(token) == secret


def test_salt_changes_the_key():
    token = Fernet(derive_key('passphrase', 'salt')).encrypt(b'JBSWY3DPEHPK3PXP')

    with pytest.raises(InvalidToken):
        Fernet(derive_key('passphrase', 'other-salt')).decrypt(token)


def test_fernet_is_cached():
    assert get_fernet() is get_fernet()


def test_missing_key_is_rejected(monkeypatch):
    monkeypatch.setattr('src.settings.DB_ENCRYPTION_KEY', '')
    get_fernet.cache_clear()
    try:
        with pytest.raises(ValueError):
            get_fernet()
    finally:
        monkeypatch.undo()
        get_fernet.cache_clear()


def test_encrypt_differs_per_call():
    secret = pyotp.random_base32()
    first, second = encrypt(secret), encrypt(secret)

    assert first != second
    assert first.startswith('gAAAAA')
    assert decrypt(first) == decrypt(second) == secret


def test_empty_values_pass_through():
    assert encrypt('') == ''
    assert decrypt('') == ''


@pytest.mark.parametrize('ciphertext', ['not-a-fernet-token', encrypt('JBSWY3DPEHPK3PXP')[:-10] + 'tampered!!'])
def test_unreadable_ciphertext_raises(ciphertext):
    with pytest.raises(DecryptionFailed):
        decrypt(ciphertext)
