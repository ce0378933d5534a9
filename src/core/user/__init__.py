from src.core.user.domains import UserCreate, UserRead, UserUpdate, UserWithSecretRead
from src.core.user.exceptions import ContactRequired, UserNotFound
from src.core.user.models import HasUser, User
from src.core.user.service import UserService

__all__ = [
    'ContactRequired',
    'HasUser',
    'User',
    'UserCreate',
    'UserRead',
    'UserUpdate',
    'UserWithSecretRead',
    'UserNotFound',
    'UserService',
]
