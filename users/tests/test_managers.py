import pytest

from users.factories import UserFactory
from users.models import User


@pytest.mark.django_db
def test_create_user():
    """Test creating a regular user"""
    user = User.objects.create_user(email="test@example.com", password="testpassword123")
    assert user.email == "test@example.com"
    assert user.username == "test"
    assert user.time_zone == "UTC"
    assert user.check_password("testpassword123")
    assert not user.is_superuser
    assert not user.is_staff
    assert user.is_active


@pytest.mark.django_db
def test_create_user_with_additional_fields():
    """Test creating a user with additional fields"""
    user = User.objects.create_user(
        email="test@example.com",
        password="testpassword123",
        username="host-anna",
        time_zone="America/Sao_Paulo",
        first_name="Anna",
    )
    assert user.username == "host-anna"
    assert user.time_zone == "America/Sao_Paulo"
    assert user.get_full_name() == "Anna"
    assert not user.is_superuser


@pytest.mark.django_db
def test_create_user_without_email_fails():
    with pytest.raises(ValueError, match="email must be set"):
        User.objects.create_user(email="", password="testpassword123")


@pytest.mark.django_db
def test_create_superuser():
    """Test creating a superuser"""
    admin_user = User.objects.create_superuser(
        email="admin@example.com", password="adminpassword123"
    )
    assert admin_user.email == "admin@example.com"
    assert admin_user.check_password("adminpassword123")
    assert admin_user.is_superuser
    assert admin_user.is_staff
    assert admin_user.is_active


@pytest.mark.django_db
def test_email_normalization():
    """Test email normalization during user creation"""
    user = User.objects.create_user(email="Test@EXAMPLE.com", password="testpassword123")
    # BaseUserManager.normalize_email() typically only normalizes the domain part
    assert user.email == "Test@example.com"


@pytest.mark.django_db
def test_get_by_natural_key_is_case_insensitive():
    user = User.objects.create_user(email="host@example.com", password="testpassword123")
    assert User.objects.get_by_natural_key("HOST@example.com") == user


@pytest.mark.django_db
def test_user_factory_reuses_existing_email():
    first = UserFactory().create_user(email="same@example.com")
    second = UserFactory().create_user(email="same@example.com")
    assert first.pk == second.pk
