from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from src.common.boundaries import import_boundary_modules
from src.common.nanoid import NanoId, NanoIdType
from src.common.utils import utcnow
from src.network.database.repository.mixin import (
    CreateDomainType,
    ReadDomainType,
    RepositoryMixin,
)


class BaseModel(DeclarativeBase, RepositoryMixin[ReadDomainType, CreateDomainType]):
    __pk_abbrev__: str = NotImplemented

    @declared_attr
    def id(cls) -> Mapped[str]:
        # Ids read like "usr_..." so every model names its prefix
        if cls.__pk_abbrev__ is NotImplemented:
            raise NotImplementedError(f'{cls.__name__} must set __pk_abbrev__')

        return mapped_column(String(length=50), primary_key=True, default=lambda: cls.generate_id())

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime, default=utcnow, nullable=False)

    @declared_attr
    def modified_at(cls) -> Mapped[Optional[datetime]]:
        return mapped_column(DateTime, onupdate=utcnow, nullable=True)

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.id}>'

    @classmethod
    def generate_id(cls) -> NanoIdType:
        return NanoId.gen(abbrev=cls.__pk_abbrev__)


def create_all_tables() -> None:
    """
    Schema bootstrap for local development and tests, tables that already exist are left alone
    """
    from src.network.database.session import engine

    import_boundary_modules('models')
    BaseModel.metadata.create_all(engine)
