import pytest
from asgiref.sync import async_to_sync, sync_to_async
from channels.layers import get_channel_layer
from django.db import DatabaseError

from messaging.exceptions import StoreError, ValidationError
from messaging.models import PatientMessage, StaffMessage
from messaging.services import store
from messaging.services.feed import message_group

pytestmark = pytest.mark.django_db


def test_send_stores_row_in_channel_table(staff, patient):
    msg = store.send(staff.id, patient.id, "  Your results are ready  ", "staff")

    assert msg.channel == "staff"
    assert msg.content == "Your results are ready"
    assert msg.is_read is False
    assert StaffMessage.objects.filter(id=msg.id).exists()
    assert not PatientMessage.objects.exists()


def test_send_sanitises_markup(staff, patient):
    msg = store.send(staff.id, patient.id, "<div onclick=\"steal()\">Hi</div>", "staff")
    assert msg.content == "Hi"


@pytest.mark.parametrize("content", ["", "   ", "<div></div>"])
def test_send_rejects_empty_content(staff, patient, content):
    with pytest.raises(ValidationError):
        store.send(staff.id, patient.id, content, "staff")
    assert not StaffMessage.objects.exists()


def test_send_rejects_overlong_content(staff, patient, settings):
    settings.MESSAGE_MAX_LENGTH = 10
    with pytest.raises(ValidationError):
        store.send(staff.id, patient.id, "x" * 11, "staff")


def test_send_rejects_unknown_receiver_and_channel(staff, patient):
    with pytest.raises(ValidationError):
        store.send(staff.id, 987654, "hello", "staff")
    with pytest.raises(ValidationError):
        store.send(staff.id, patient.id, "hello", "sms")


def test_send_is_idempotent_per_client_token(staff, patient):
    first = store.send(staff.id, patient.id, "Hello", "staff", client_token="tok-1")
    again = store.send(staff.id, patient.id, "Hello", "staff", client_token="tok-1")

    assert again.id == first.id
    assert StaffMessage.objects.count() == 1
    assert first.client_token == "tok-1"


def test_losing_a_token_race_returns_the_stored_row(staff, patient, monkeypatch):
    first = store.send(staff.id, patient.id, "Hello", "staff", client_token="tok-race")
    real_lookup = store._stored_for_token
    lookups = []

    def late_lookup(model, sender_id, client_token):
        lookups.append(client_token)
        # the first lookup runs before the other insert commits
        return None if len(lookups) == 1 else real_lookup(model, sender_id, client_token)

    monkeypatch.setattr(store, "_stored_for_token", late_lookup)
    message, created = store.write(staff.id, patient.id, "Hello", "staff", client_token="tok-race")

    assert created is False
    assert message.id == first.id
    assert StaffMessage.objects.count() == 1


def test_store_failure_is_wrapped(staff, patient, monkeypatch):
    def boom(**kwargs):
        raise DatabaseError("connection reset")

    monkeypatch.setattr(StaffMessage.objects, "create", boom)
    with pytest.raises(StoreError):
        store.send(staff.id, patient.id, "hello", "staff")


def test_list_for_pair_returns_both_directions_oldest_first(staff, staff2, patient):
    a = store.send(staff.id, patient.id, "one", "patient")
    b = store.send(patient.id, staff.id, "two", "patient")
    store.send(staff2.id, patient.id, "other pair", "patient")

    rows = store.list_for_pair(staff.id, patient.id, "patient")

    assert [m.id for m in rows] == [a.id, b.id]
    assert store.list_for_pair(staff.id, patient.id, "staff") == []


def test_mark_read_is_idempotent(staff, patient):
    store.send(patient.id, staff.id, "q1", "patient")
    store.send(patient.id, staff.id, "q2", "patient")
    store.send(staff.id, patient.id, "answer", "staff")

    assert store.mark_read(staff.id, patient.id, "patient") == 2
    assert store.mark_read(staff.id, patient.id, "patient") == 0
    # the staff member's own message is untouched
    assert StaffMessage.objects.get().is_read is False


def test_send_and_read_publish_feed_events(staff, patient):
    layer = get_channel_layer()

    async def scenario():
        inbox = await layer.new_channel()
        await layer.group_add(message_group(patient.id), inbox)
        outbox = await layer.new_channel()
        await layer.group_add(message_group(staff.id), outbox)

        msg = await sync_to_async(store.send)(staff.id, patient.id, "Hello", "staff")
        inserted = await layer.receive(inbox)
        echoed = await layer.receive(outbox)
        await sync_to_async(store.mark_read)(patient.id, staff.id, "staff")
        updated = await layer.receive(outbox)
        return msg, inserted, echoed, updated

    msg, inserted, echoed, updated = async_to_sync(scenario)()

    assert inserted["kind"] == "message.inserted"
    assert inserted["message"]["id"] == msg.id
    assert echoed["message"]["id"] == msg.id
    assert updated["kind"] == "message.updated"
    assert updated["message"]["isRead"] is True
