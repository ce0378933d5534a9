from sqlalchemy import String, TypeDecorator

from src.common.encryption import decrypt, encrypt


class EncryptedString(TypeDecorator):
    """
    Encrypted on write and decrypted on read. Every write produces a new
    ciphertext, the column can't be filtered or indexed on

        totp_secret: Mapped[str | None] = mapped_column(EncryptedString, nullable=True)
    """

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else encrypt(value)

    def process_result_value(self, value, dialect):
        return None if value is None else decrypt(value)

    def process_literal_param(self, value, dialect):
        return 'NULL' if value is None else f"'{encrypt(value)}'"

    @property
    def python_type(self):
        return str
