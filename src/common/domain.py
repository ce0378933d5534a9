from typing import Any

from humps import camelize  # type: ignore[attr-defined]
from pydantic import BaseModel, ConfigDict


class BaseDomain(BaseModel):
    """
    snake_case in python, camelCase on the wire. Input accepts either
    """

    model_config = ConfigDict(
        extra='forbid',
        use_enum_values=True,
        from_attributes=True,
        alias_generator=camelize,
        populate_by_name=True,
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()

    def get_provided_fields(self) -> dict[str, Any]:
        """
        Only the fields the caller actually sent, explicit nulls included
        """
        return self.model_dump(exclude_unset=True)
