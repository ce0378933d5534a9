from typing import Any, Dict, Generic, List, Sequence, Type, TypeVar, Union

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.exc import IntegrityError, MultipleResultsFound, NoResultFound
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import UnaryExpression

from src.common.domain import BaseDomain
from src.network.database.repository.exceptions import (
    MultipleRepositoryObjectsFound,
    PreventingModelTruncation,
    RepositoryObjectNotFound,
)
from src.network.database.session import db

ReadDomainType = TypeVar('ReadDomainType', bound=BaseDomain)
CreateDomainType = TypeVar('CreateDomainType', bound=BaseDomain)


class RepositoryMixin(Generic[ReadDomainType, CreateDomainType]):
    """
    Every read and write of a model goes through these classmethods and rows
    leave as pydantic read domains. update_where / delete are single statements
    returning the matched row count, which is how callers detect whether they
    won a race for a row:

        claimed = DispatchJob.update_where(
            DispatchJob.id == job_id,
            DispatchJob.status == 'pending',
            values={'status': 'processing'},
        )
    """

    __create_domain__: Type[CreateDomainType] = NotImplemented
    __read_domain__: Type[ReadDomainType] = NotImplemented

    @classmethod
    def _get_session(cls) -> Session:
        return db.session

    @classmethod
    def _where(cls, statement: Any, clauses: Sequence[Any], specification: Dict[str, Any]) -> Any:
        for clause in clauses:
            statement = statement.where(clause)
        for key, value in specification.items():
            statement = statement.where(getattr(cls, key) == value)
        return statement

    @classmethod
    def _select(cls, *clauses: Any, **specification: Any) -> Select:
        # Rows may have been changed by a conditional update earlier in this session
        statement = select(cls).execution_options(populate_existing=True)
        return cls._where(statement, clauses, specification)

    @classmethod
    def get(cls, *clauses: Any, **specification: Any) -> ReadDomainType:
        return cls._to_domain(cls._get(*clauses, **specification))

    @classmethod
    def _get(cls, *clauses: Any, **specification: Any) -> Any:
        try:
            return cls._get_session().scalars(cls._select(*clauses, **specification)).one()
        except MultipleResultsFound:
            raise MultipleRepositoryObjectsFound(f'Multiple {cls.__name__} rows for {specification or clauses}')
        except NoResultFound:
            raise RepositoryObjectNotFound(f'{cls.__name__} not found for {specification or clauses}')

    @classmethod
    def get_or_none(cls, *clauses: Any, **specification: Any) -> ReadDomainType | None:
        try:
            return cls.get(*clauses, **specification)
        except RepositoryObjectNotFound:
            return None

    @classmethod
    def list(
        cls,
        *clauses: Any,
        ordering: List[Union[str, UnaryExpression]] | None = None,
        limit: int | None = None,
        **specification: Any,
    ) -> List[ReadDomainType]:
        statement = cls._select(*clauses, **specification)
        if ordering:
            statement = statement.order_by(*cls._parse_ordering(ordering))
        if limit is not None:
            statement = statement.limit(limit)
        return [cls._to_domain(instance) for instance in cls._get_session().scalars(statement)]

    @classmethod
    def list_attribute(cls, attribute: str, *clauses: Any, limit: int | None = None, **specification: Any) -> List[Any]:
        statement = cls._where(select(getattr(cls, attribute)), clauses, specification)
        if limit is not None:
            statement = statement.limit(limit)
        return list(cls._get_session().scalars(statement))

    @classmethod
    def count(cls, *clauses: Any, **specification: Any) -> int:
        statement = cls._where(select(func.count()).select_from(cls), clauses, specification)
        return int(cls._get_session().scalar(statement) or 0)

    @classmethod
    def create(cls, domain_obj: CreateDomainType) -> ReadDomainType:
        instance = cls(**domain_obj.to_dict())
        session = cls._get_session()
        session.add(instance)
        cls._flush(session)
        return cls._to_domain(instance)

    @classmethod
    def update(cls, id: str, **updates: Any) -> ReadDomainType:
        session = cls._get_session()
        instance = session.get(cls, id, populate_existing=True)
        if instance is None:
            raise RepositoryObjectNotFound(f'{cls.__name__} {id} not found')

        for key, value in updates.items():
            if not hasattr(instance, key):
                raise ValueError(f'{key} is not an attribute of {cls.__name__}')
            setattr(instance, key, value)

        cls._flush(session)
        return cls._to_domain(instance)

    @classmethod
    def update_where(cls, *clauses: Any, values: Dict[Any, Any]) -> int:
        """
        values may hold SQL expressions, e.g. {'attempts': Model.attempts + 1}
        """
        cls._ensure_filtered(clauses, 'update')
        statement = cls._where(update(cls).values(values), clauses, {})
        return cls._execute_write(statement)

    @classmethod
    def delete(cls, *clauses: Any) -> int:
        cls._ensure_filtered(clauses, 'delete')
        return cls._execute_write(cls._where(delete(cls), clauses, {}))

    @classmethod
    def _ensure_filtered(cls, clauses: Sequence[Any], operation: str) -> None:
        # and_() / or_() with no members compile to an empty string and filter nothing
        if not any(str(clause.compile()) for clause in clauses):
            raise PreventingModelTruncation(f'Refusing to {operation} every {cls.__name__} row')

    @classmethod
    def _execute_write(cls, statement: Any) -> int:
        session = cls._get_session()
        try:
            result = session.execute(statement.execution_options(synchronize_session='fetch'))
        except IntegrityError:
            session.rollback()
            raise
        return int(result.rowcount)

    @classmethod
    def _flush(cls, session: Session) -> None:
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            raise

    @classmethod
    def _parse_ordering(cls, ordering: List[Union[str, UnaryExpression]]) -> List[Any]:
        """
        '-created_at' sorts descending, expressions pass through
        """
        order_expressions = []
        for order in ordering:
            if not isinstance(order, str):
                order_expressions.append(order)
            elif order.startswith('-'):
                order_expressions.append(getattr(cls, order[1:]).desc())
            else:
                order_expressions.append(getattr(cls, order).asc())
        return order_expressions

    @classmethod
    def _to_domain(cls, instance: Any) -> ReadDomainType:
        return cls.__read_domain__.model_validate(instance)
