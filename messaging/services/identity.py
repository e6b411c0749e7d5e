from typing import Optional

from django.contrib.auth import get_user_model

from messaging.exceptions import Unauthenticated, ValidationError
from messaging.types import Caller, ROLE_PATIENT, ROLE_STAFF

User = get_user_model()

MESSAGING_ROLES = (ROLE_STAFF, ROLE_PATIENT)


def resolve_caller(user) -> Caller:
    """Return the caller's id and role, or raise ``Unauthenticated``.

    Only ``staff`` and ``patient`` principals take part in messaging; any
    other role is treated the same as an anonymous session.
    """
    if user is None or not getattr(user, 'is_authenticated', False):
        raise Unauthenticated('authentication required')
    role = getattr(user, 'role', None)
    if role not in MESSAGING_ROLES:
        raise Unauthenticated(f'role {role!r} cannot use messaging')
    return Caller(id=user.id, role=role)


def get_profile(user_id: int) -> Optional[User]:
    return User.objects.filter(id=user_id).only(
        'id', 'first_name', 'last_name', 'email', 'avatar_url', 'role', 'username'
    ).first()


def require_profile(user_id: int) -> User:
    profile = get_profile(user_id)
    if profile is None:
        raise ValidationError(f'unknown user {user_id}')
    return profile


def check_partner_access(caller: Caller, partner) -> None:
    """Patients only talk to clinic staff; staff may talk to anyone."""
    if caller.is_patient and getattr(partner, 'role', None) != ROLE_STAFF:
        raise PermissionError('patients can only message clinic staff')


def staff_ids() -> list[int]:
    return list(User.objects.filter(role=ROLE_STAFF, is_active=True).order_by('id').values_list('id', flat=True))


def display_name(profile) -> str:
    name = f"{profile.first_name} {profile.last_name}".strip()
    return name or profile.username


def format_profile(profile) -> dict:
    return {
        'id': profile.id,
        'firstName': profile.first_name,
        'lastName': profile.last_name,
        'email': profile.email,
        'avatarUrl': profile.avatar_url or None,
        'role': profile.role,
    }
