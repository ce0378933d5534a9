import enum
from typing import Any


class BaseEnum(str, enum.Enum):
    """
    Lookups ignore case and surrounding whitespace. Subclasses map legacy
    spellings onto current values through _aliases()
    """

    @classmethod
    def _aliases(cls) -> dict[str, str]:
        return {}

    @classmethod
    def _missing_(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return None

        normalized = value.strip().lower()
        normalized = cls._aliases().get(normalized, normalized)
        for member in cls:
            if member.value == normalized:
                return member
        return None

    def __str__(self) -> str:
        return str(self.value)

    @classmethod
    def list_all(cls) -> list[str]:
        return [member.value for member in cls]
