import pytest
from django.core.cache import cache

from messaging.models import User


@pytest.fixture(autouse=True)
def fresh_channel_layer(settings):
    # a new in-memory layer per test; its queues bind to the test's event loop
    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}
    cache.clear()
    yield


@pytest.fixture
def staff(db):
    return User.objects.create_user(username="staff1", password="staffpass", role="staff",
                                    first_name="Dana", last_name="Reyes")


@pytest.fixture
def staff2(db):
    return User.objects.create_user(username="staff2", password="staffpass", role="staff",
                                    first_name="Omar", last_name="Haddad")


@pytest.fixture
def patient(db):
    return User.objects.create_user(username="patient1", password="patientpass", role="patient",
                                    first_name="Lee", last_name="Park")


@pytest.fixture
def patient2(db):
    return User.objects.create_user(username="patient2", password="patientpass", role="patient",
                                    first_name="Mia", last_name="Santos")
