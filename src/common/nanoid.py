import secrets
import string
from typing import TypeAlias

# Primary keys are prefixed with the owning model
# e.g. user-4fQ2kLm9XbT0a, otp-Zr81nQpD3sWvE, djob-7YcKe0aHq2LmB
NanoIdType: TypeAlias = str

ALPHANUMERIC = string.digits + string.ascii_letters


def generate_custom_nanoid(size: int = 8, char_pool: str = ALPHANUMERIC) -> str:
    """
    Uniform draw from char_pool using the OS CSPRNG, also used for one-time codes
    """
    if size < 1:
        raise ValueError('size must be positive')
    if not char_pool:
        raise ValueError('char_pool must not be empty')

    return ''.join(secrets.choice(char_pool) for _ in range(size))


class NanoId:
    _CHAR_SIZE = 13

    @classmethod
    def gen(cls, abbrev: str | None = None) -> NanoIdType:
        nano_id = generate_custom_nanoid(size=cls._CHAR_SIZE)
        return f'{abbrev}-{nano_id}' if abbrev else nano_id
