from faker import Faker as _Faker
from polyfactory.factories.pydantic_factory import ModelFactory
from polyfactory.pytest_plugin import register_fixture

from src.core.user import UserCreate

faker = _Faker()


def e164_phone_number() -> str:
    return f'+1555{faker.unique.random_number(digits=7, fix_len=True)}'


@register_fixture(scope='session', autouse=True, name='user_factory')
class UserFactory(ModelFactory[UserCreate]):
    __model__ = UserCreate

    name = faker.name
    phone = e164_phone_number
    email = lambda: faker.unique.email()  # noqa: E731
    authentication_by = lambda: 'sms'  # noqa: E731
