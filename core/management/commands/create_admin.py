from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from core.database import get_collection, utcnow
from core.documents import USERS
from core.documents.user import ROLE_ADMIN


class Command(BaseCommand):
    help = "Create the first admin user unless one already exists."

    def add_arguments(self, parser):
        parser.add_argument("--email", default="admin@mentormatch.com")
        parser.add_argument("--password", default="Admin123!")
        parser.add_argument("--first-name", default="Admin")
        parser.add_argument("--last-name", default="User")

    def handle(self, *args, **options):
        users = get_collection(USERS)
        existing = users.find_one({"role": ROLE_ADMIN})
        if existing:
            self.stdout.write(self.style.WARNING(f"Admin user already exists: {existing.get('email')}"))
            return

        now = utcnow()
        users.insert_one(
            {
                "email": options["email"].strip().lower(),
                "passwordHash": make_password(options["password"]),
                "role": ROLE_ADMIN,
                "firstName": options["first_name"],
                "lastName": options["last_name"],
                "isVerified": True,
                "isActive": True,
                "createdAt": now,
                "updatedAt": now,
            }
        )
        self.stdout.write(self.style.SUCCESS(f"Admin user created: {options['email']}"))
        self.stdout.write(self.style.WARNING("Change the password after the first login."))
