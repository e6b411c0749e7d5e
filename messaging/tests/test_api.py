"""
Integration tests for the messaging HTTP API.

These exercise sending, listing, read receipts, conversation summaries and
the notification inbox through DRF's APIClient, including the error
envelope returned for bad input and forbidden partners.

To run the tests:

```
pytest -q messaging/tests
```
"""

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from messaging.models import PatientMessage, StaffMessage, StaffNotification, User


class MessagingAPITests(APITestCase):
    def setUp(self) -> None:
        self.staff = User.objects.create_user(
            username="staff1", password="staffpass", role="staff", first_name="Dana", last_name="Reyes",
        )
        self.staff2 = User.objects.create_user(username="staff2", password="staffpass", role="staff")
        self.patient = User.objects.create_user(
            username="patient1", password="patientpass", role="patient", first_name="Lee", last_name="Park",
        )
        self.patient2 = User.objects.create_user(username="patient2", password="patientpass", role="patient")

    def send(self, user, receiver, content, **extra):
        self.client.force_authenticate(user=user)
        return self.client.post(reverse("messages"), {"receiverId": receiver.id, "content": content, **extra},
                                format="json")

    def test_staff_sends_and_patient_reads(self) -> None:
        resp = self.send(self.staff, self.patient, "Hello", clientToken="c-1")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertTrue(resp.data["ok"])
        self.assertEqual(resp.data["message"]["channel"], "staff")
        self.assertEqual(resp.data["message"]["clientToken"], "c-1")

        self.client.force_authenticate(user=self.patient)
        listing = self.client.get(reverse("messages"), {"partnerId": self.staff.id})
        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual([m["content"] for m in listing.data["data"]], ["Hello"])
        self.assertEqual(listing.data["unread"], 1)

        read = self.client.patch(reverse("messages_read"), {"partnerId": self.staff.id}, format="json")
        self.assertEqual(read.data, {"ok": True, "updated": 1})
        again = self.client.patch(reverse("messages_read"), {"partnerId": self.staff.id}, format="json")
        self.assertEqual(again.data["updated"], 0)

        listing = self.client.get(reverse("messages"), {"partnerId": self.staff.id})
        self.assertEqual(listing.data["unread"], 0)

    def test_patient_message_goes_to_patient_channel_and_notifies_staff(self) -> None:
        resp = self.send(self.patient, self.staff, "When do you open?")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["message"]["channel"], "patient")
        self.assertEqual(PatientMessage.objects.count(), 1)
        self.assertEqual(StaffNotification.objects.count(), 2)

    def test_merged_listing_and_single_channel_listing(self) -> None:
        self.send(self.staff, self.patient, "from staff")
        self.send(self.patient, self.staff, "from patient")

        self.client.force_authenticate(user=self.staff)
        merged = self.client.get(reverse("messages"), {"partnerId": self.patient.id})
        self.assertEqual([m["content"] for m in merged.data["data"]], ["from staff", "from patient"])
        one = self.client.get(reverse("messages"), {"partnerId": self.patient.id, "channel": "patient"})
        self.assertEqual([m["content"] for m in one.data["data"]], ["from patient"])

    def test_empty_message_is_rejected(self) -> None:
        resp = self.send(self.staff, self.patient, "   ")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(resp.data["ok"])
        self.assertEqual(resp.data["error"]["code"], "validation_error")
        self.assertFalse(StaffMessage.objects.exists())

    def test_unknown_receiver_is_rejected(self) -> None:
        self.client.force_authenticate(user=self.staff)
        resp = self.client.post(reverse("messages"), {"receiverId": 999999, "content": "hi"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_channel_is_rejected(self) -> None:
        resp = self.send(self.staff, self.patient, "hi", channel="sms")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(resp.data["ok"])

    def test_repeated_client_token_does_not_duplicate(self) -> None:
        first = self.send(self.staff, self.patient, "Hello", clientToken="same")
        second = self.send(self.staff, self.patient, "Hello", clientToken="same")
        self.assertEqual(first.data["message"]["id"], second.data["message"]["id"])
        self.assertEqual(StaffMessage.objects.count(), 1)

    def test_conversations_summary(self) -> None:
        self.send(self.patient, self.staff, "first")
        self.send(self.patient2, self.staff, "second")

        self.client.force_authenticate(user=self.staff)
        resp = self.client.get(reverse("conversations"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        partners = [c["partner"]["id"] for c in resp.data["data"]]
        self.assertEqual(set(partners), {self.patient.id, self.patient2.id})
        self.assertTrue(all(c["unread"] == 1 for c in resp.data["data"]))

    def test_notification_inbox(self) -> None:
        self.send(self.patient, self.staff, "one")
        self.send(self.patient, self.staff, "two")

        self.client.force_authenticate(user=self.staff)
        inbox = self.client.get(reverse("notifications"), {"limit": 1})
        self.assertEqual(len(inbox.data["data"]), 1)
        self.assertEqual(inbox.data["unread"], 2)

        one = self.client.post(reverse("notifications_read"), {"id": inbox.data["data"][0]["id"]}, format="json")
        self.assertEqual(one.data["updated"], 1)
        rest = self.client.post(reverse("notifications_read"), {}, format="json")
        self.assertEqual(rest.data["updated"], 1)

    def test_staff_can_trigger_broadcast(self) -> None:
        self.client.force_authenticate(user=self.staff)
        resp = self.client.post(reverse("notifications_broadcast"), {
            "event": "appointment.confirmed",
            "payload": {"patient_id": self.patient.id, "appointment_date": "2024-05-02", "start_time": "10:00"},
        }, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["created"], 1)

        low = self.client.post(reverse("inventory_check"), {"itemName": "MMR", "stocksLeft": 4}, format="json")
        self.assertEqual(low.status_code, status.HTTP_201_CREATED)
        self.assertEqual(low.data["status"], "low_stock")
        # the triggering staff member is not notified
        self.assertEqual(low.data["created"], 1)

        fine = self.client.post(reverse("inventory_check"), {"itemName": "MMR", "stocksLeft": 40}, format="json")
        self.assertEqual(fine.data, {"ok": True, "status": "in_stock", "created": 0})

    def test_broadcast_rejects_a_malformed_patient_id(self) -> None:
        self.client.force_authenticate(user=self.staff)
        for bad in ("abc", -3, True):
            resp = self.client.post(reverse("notifications_broadcast"), {
                "event": "appointment.confirmed", "payload": {"patient_id": bad},
            }, format="json")
            self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(resp.data["error"]["code"], "validation_error")

        resp = self.client.post(reverse("notifications_broadcast"), {
            "event": "appointment.confirmed", "payload": {"patient_id": str(self.patient.id)},
        }, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["created"], 1)

    def test_patient_cannot_trigger_broadcast(self) -> None:
        self.client.force_authenticate(user=self.patient)
        resp = self.client.post(reverse("notifications_broadcast"), {"event": "appointment.created"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_healthz(self) -> None:
        resp = self.client.get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["db"], True)
