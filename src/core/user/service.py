import datetime

from loguru import logger
from sqlalchemy import func

from src.common.nanoid import NanoIdType
from src.common.utils import mask_destination
from src.core.user.domains import UserCreate, UserRead, UserUpdate, UserWithSecretRead
from src.core.user.exceptions import ContactRequired, UserNotFound
from src.core.user.models import User
from src.network.database.repository.exceptions import RepositoryObjectNotFound


class UserService:
    @classmethod
    def factory(cls) -> 'UserService':
        return cls()

    def get_user_for_id(self, user_id: NanoIdType) -> UserRead:
        try:
            return User.get(id=user_id)
        except RepositoryObjectNotFound:
            raise UserNotFound(message=f'User not found with id: {user_id}')

    def get_user_with_secret_for_id(self, user_id: NanoIdType) -> UserWithSecretRead:
        try:
            return User.get_with_secret(id=user_id)
        except RepositoryObjectNotFound:
            raise UserNotFound(message=f'User not found with id: {user_id}')

    def get_user_for_contact_or_none(self, phone: str | None = None, email: str | None = None) -> UserRead | None:
        """
        Phone takes precedence over email
        """
        if phone:
            user = User.get_or_none(User.phone == phone.strip())
            if user:
                return user
        if email:
            return User.get_or_none(func.lower(User.email) == email.strip().lower())
        return None

    def create_user(self, user_create: UserCreate) -> UserRead:
        if not user_create.phone and not user_create.email:
            raise ContactRequired()

        user = User.create(user_create)
        logger.info(
            f'created user {user.id} via {user.authentication_by} '
            f'for {mask_destination(user.phone or user.email)}'
        )
        return user

    def update_user(self, user_id: NanoIdType, user_update: UserUpdate) -> UserRead:
        """
        Only fields the caller provided with a value are written
        """
        updates = {key: value for key, value in user_update.get_provided_fields().items() if value is not None}
        if not updates:
            return self.get_user_for_id(user_id)

        try:
            return User.update(id=user_id, **updates)
        except RepositoryObjectNotFound:
            raise UserNotFound(message=f'User not found with id: {user_id}')

    def set_totp_secret(self, user_id: NanoIdType, secret: str) -> None:
        User.update(id=user_id, totp_secret=secret)

    def set_totp_enabled(self, user_id: NanoIdType, enabled: bool) -> UserRead:
        return User.update(id=user_id, totp_enabled=enabled)

    def record_login(self, user_id: NanoIdType, at: datetime.datetime) -> None:
        User.update(id=user_id, last_login_at=at)
