from collections.abc import Callable

from cuid2 import cuid_wrapper
from model_bakery import baker

from users.models import User


cuid_generator: Callable[[], str] = cuid_wrapper()


DEFAULT_TEST_USER_PASSWORD = "123456"  # noqa: S105


class UserFactory:
    def create_user(self, is_seed_data=False, **kwargs) -> User:
        try:
            return User.objects.get(email=kwargs.get("email", ""))
        except User.DoesNotExist:
            pass

        unique_id = cuid_generator()
        password = kwargs.pop("password", DEFAULT_TEST_USER_PASSWORD)
        kwargs.setdefault("email", f"user{unique_id}@example.com")
        kwargs.setdefault("username", f"user-{unique_id}")
        kwargs.setdefault("time_zone", "UTC")

        user = baker.prepare(User, **kwargs)
        user.set_password(password)

        # Add seed data flag to meta field
        if is_seed_data:
            user.meta = {"is_seed_data": True}

        user.save()
        return user
