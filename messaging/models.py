"""
Database models for the clinic messaging backend.

Messages live in two parallel tables: ``StaffMessage`` for the staff
channel and ``PatientMessage`` for the patient channel.  Both share the
same columns through :class:`BaseMessage`, so the rest of the app can
treat a row from either table as one message type tagged with its
channel.  Notifications are split the same way into a staff store and a
patient store.
"""
from __future__ import annotations

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Custom user model carrying the portal role and profile fields.

    The profile fields (``first_name``, ``last_name``, ``email``) come from
    ``AbstractUser``; ``avatar_url`` and ``role`` are added here.  Only
    ``staff`` and ``patient`` principals take part in messaging.
    """
    ROLE_STAFF = 'staff'
    ROLE_PATIENT = 'patient'
    ROLE_CHOICES = [
        (ROLE_STAFF, 'Staff'),
        (ROLE_PATIENT, 'Patient'),
        ('provider', 'Provider'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    avatar_url = models.URLField(max_length=512, blank=True, default='')

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


# ---------------------------------------------------------------------------
# Messages (one table per channel)
# ---------------------------------------------------------------------------

class BaseMessage(models.Model):
    CHANNEL: str = ''

    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='+')
    receiver = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='+')
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    is_read = models.BooleanField(default=False)
    # Idempotency token assigned by the client when the message was composed.
    client_token = models.CharField(max_length=64, blank=True, null=True, db_index=True)

    class Meta:
        abstract = True
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.CHANNEL} msg {self.id} {self.sender_id}->{self.receiver_id}"


class StaffMessage(BaseMessage):
    """Staff-channel row: written when a staff member sends."""
    CHANNEL = 'staff'

    class Meta(BaseMessage.Meta):
        db_table = 'staff_messages'
        indexes = [
            models.Index(fields=['sender', 'receiver', 'created_at'], name='staff_msg_pair_idx'),
            models.Index(fields=['receiver', 'is_read'], name='staff_msg_unread_idx'),
        ]
        constraints = [
            models.UniqueConstraint(fields=['sender', 'client_token'], name='staff_msg_token_uniq'),
        ]


class PatientMessage(BaseMessage):
    """Patient-channel row: written when a patient sends."""
    CHANNEL = 'patient'

    class Meta(BaseMessage.Meta):
        db_table = 'patient_messages'
        indexes = [
            models.Index(fields=['sender', 'receiver', 'created_at'], name='patient_msg_pair_idx'),
            models.Index(fields=['receiver', 'is_read'], name='patient_msg_unread_idx'),
        ]
        constraints = [
            models.UniqueConstraint(fields=['sender', 'client_token'], name='patient_msg_token_uniq'),
        ]


# ---------------------------------------------------------------------------
# Notifications (one store per recipient role)
# ---------------------------------------------------------------------------

class BaseNotification(models.Model):
    TYPE_CHOICES = (
        ('appointment', 'appointment'),
        ('inventory', 'inventory'),
        ('message', 'message'),
        ('user', 'user'),
        ('alert', 'alert'),
        ('success', 'success'),
    )

    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='+')
    type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.type}:{self.recipient_id} {self.title}"


class StaffNotification(BaseNotification):
    class Meta(BaseNotification.Meta):
        db_table = 'staff_notifications'
        indexes = [models.Index(fields=['recipient', 'is_read', 'created_at'], name='staff_notif_inbox_idx')]


class PatientNotification(BaseNotification):
    class Meta(BaseNotification.Meta):
        db_table = 'patient_notifications'
        indexes = [models.Index(fields=['recipient', 'is_read', 'created_at'], name='patient_notif_inbox_idx')]


class AuditEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
