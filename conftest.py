import datetime

import pytest
from model_bakery import baker
from rest_framework.test import APIClient


class FakeCache:
    """Dict-backed stand-in for the Redis client, TTLs are recorded but not enforced."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    def get(self, name):
        return self.store.get(name)

    def set(self, name, value, ex=None):  # noqa: A003
        self.store[name] = value
        self.ttls[name] = ex
        return True


@pytest.fixture
def user_password():
    from users.factories import DEFAULT_TEST_USER_PASSWORD

    return DEFAULT_TEST_USER_PASSWORD


@pytest.fixture
def user(user_password):
    from users.factories import UserFactory

    return UserFactory().create_user()


@pytest.fixture
def host():
    from users.factories import UserFactory

    return UserFactory().create_user(
        email="host@example.com", username="host", first_name="Hanna", last_name="Host"
    )


@pytest.fixture
def second_host():
    from users.factories import UserFactory

    return UserFactory().create_user(
        email="second-host@example.com", username="second-host", first_name="Sam"
    )


@pytest.fixture
def now():
    return datetime.datetime(2030, 1, 7, 8, 0, tzinfo=datetime.UTC)  # a Monday


@pytest.fixture
def event_type(host):
    from bookings.models import EventType, WorkingHours

    event_type = baker.make(
        EventType,
        slug="intro-call",
        title="Intro call",
        owner=host,
        length_minutes=30,
        time_zone="UTC",
        price=0,
        seats_per_time_slot=None,
        scheduling_type=None,
        recurring_event=None,
        requires_confirmation_threshold=None,
        booking_limits={},
        custom_inputs=[],
    )
    baker.make(
        WorkingHours,
        event_type=event_type,
        days=[1, 2, 3, 4, 5],
        start_time=datetime.time(9, 0),
        end_time=datetime.time(17, 0),
    )
    return event_type


@pytest.fixture
def fake_cache():
    return FakeCache()


@pytest.fixture
def busy_times_service(fake_cache):
    from calendar_integration.services.busy_times_service import BusyTimesService

    return BusyTimesService(cache=fake_cache, cache_ttl_seconds=30, max_concurrency=2)


@pytest.fixture
def auth_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def host_client(host):
    client = APIClient()
    client.force_authenticate(user=host)
    return client


@pytest.fixture
def anonymous_client():
    client = APIClient()
    return client


@pytest.fixture
def di_container():
    """Fixture to create a DI container."""
    from di_core.containers import container

    return container
