from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from messaging.models import User

TEST_SET = [
    ("staff1", "staff", "Dana", "Reyes"),
    ("staff2", "staff", "Omar", "Haddad"),
    ("patient1", "patient", "Lee", "Park"),
    ("patient2", "patient", "Mia", "Santos"),
]


class Command(BaseCommand):
    help = "Ensure demo staff and patient accounts exist with the given password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="123456")

    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        for username, role, first_name, last_name in TEST_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={
                    "role": role,
                    "password": password,
                    "first_name": first_name,
                    "last_name": last_name,
                    "is_active": True,
                },
            )
            if not created:
                # reset password, role and active flag on existing accounts
                u.password = password
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
