import pytest
from sqlalchemy import and_, or_

# Using the User here to test with
from src.core.user import User, UserCreate
from src.network.database.repository.exceptions import PreventingModelTruncation, RepositoryObjectNotFound


@pytest.fixture
def other_user(user_factory):
    return User.create(user_factory.build())


class TestRepositoryMixinMethods:
    def test_get(self, user):
        fetched_user = User.get(id=user.id)
        assert fetched_user.email == user.email

        with pytest.raises(RepositoryObjectNotFound):
            User.get(id='user-missing')

    def test_get_or_none(self, user):
        assert User.get_or_none(User.phone == user.phone).id == user.id
        assert User.get_or_none(email='missing@example.com') is None

    def test_list(self, user, other_user):
        users = User.list(User.id.in_((user.id, other_user.id)), ordering=['-created_at'], limit=1)
        assert len(users) == 1

    def test_list_attribute(self, user, other_user):
        emails = User.list_attribute('email')
        assert user.email in emails
        assert other_user.email in emails

        assert len(User.list_attribute('id', limit=1)) == 1

    def test_count(self, user, other_user):
        assert User.count() == 2
        assert User.count(User.id == user.id) == 1

    def test_delete_returns_rowcount(self, user, other_user):
        assert User.delete(User.id == user.id) == 1
        assert User.delete(User.id == user.id) == 0
        assert not User.get_or_none(User.id == user.id)
        assert User.get_or_none(User.id == other_user.id)

    def test_delete_with_null_arguments(self, user):
        with pytest.raises(PreventingModelTruncation):
            # Empty delete
            User.delete()
        with pytest.raises(PreventingModelTruncation):
            # Empty clauses tuple
            User.delete(*())
        with pytest.raises(PreventingModelTruncation):
            User.delete(or_(*[]))
        with pytest.raises(PreventingModelTruncation):
            User.delete(and_(*[]))

    def test_update(self, user):
        updated_user = User.update(user.id, name='John Doe', totp_enabled=True)
        assert updated_user.name == 'John Doe'
        assert updated_user.totp_enabled

    def test_update_raise_for_bad_key(self, user):
        with pytest.raises(ValueError):
            User.update(user.id, first_name='John')

    def test_update_where_is_conditional(self, user, other_user):
        updated = User.update_where(
            User.id == user.id, User.failed_attempts == 0, values={'failed_attempts': User.failed_attempts + 1}
        )
        assert updated == 1
        assert User.get(id=user.id).failed_attempts == 1

        # The condition no longer holds, nothing changes
        assert not User.update_where(User.id == user.id, User.failed_attempts == 0, values={'failed_attempts': 5})
        assert User.get(id=user.id).failed_attempts == 1
        assert User.get(id=other_user.id).failed_attempts == 0

    def test_update_where_requires_clauses(self):
        with pytest.raises(PreventingModelTruncation):
            User.update_where(values={'failed_attempts': 0})

    def test_create_from_domain(self):
        user = User.create(UserCreate(phone='+15550000001', authentication_by='sms'))
        assert user.id.startswith('user-')
        assert user.failed_attempts == 0
        assert not user.totp_enabled

    @pytest.mark.filterwarnings('error::sqlalchemy.exc.SADeprecationWarning')
    def test_writes_flush_without_deprecated_arguments(self, user):
        created = User.create(UserCreate(email='flush@example.com', authentication_by='email'))
        updated = User.update(created.id, name='Flushed')

        assert updated.name == 'Flushed'
        assert User.get(id=created.id).email == 'flush@example.com'
