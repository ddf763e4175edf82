from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from monitor.models import ReceptionistProfile, User


class Command(BaseCommand):
    help = "Ensure a receptionist account and profile exist (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--email", required=True)
        parser.add_argument("--password", required=True)
        parser.add_argument("--full-name", default="Reception Desk")
        parser.add_argument("--hospital", default="")

    @transaction.atomic
    def handle(self, *args, **opts):
        email = opts["email"].strip().lower()
        if len(opts["password"]) < 8:
            raise CommandError("password must be at least 8 characters")

        user = User.objects.filter(email__iexact=email).first()
        created = user is None
        if created:
            user = User.objects.create_user(username=email, email=email, password=opts["password"])
        elif user.role == User.ROLE_DOCTOR or hasattr(user, "patient_record"):
            raise CommandError(f"{email} already exists with role {user.role}")

        user.role = User.ROLE_RECEPTIONIST
        user.is_active = True
        if not created:
            user.set_password(opts["password"])
        user.save()

        ReceptionistProfile.objects.update_or_create(
            user=user,
            defaults={"full_name": opts["full_name"], "hospital_name": opts["hospital"]},
        )
        verb = "created" if created else "updated"
        self.stdout.write(self.style.SUCCESS(f"ok: receptionist {email} {verb}"))
