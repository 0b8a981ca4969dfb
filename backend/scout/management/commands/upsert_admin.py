from django.core.management.base import BaseCommand
from django.contrib.auth import get_user_model

from scout.models import ROLE_ADMIN, UserAccount


class Command(BaseCommand):
    help = "Create or update an admin account with a specified username/password."

    def add_arguments(self, parser):
        parser.add_argument('--username', required=True, help='Username for the admin user')
        parser.add_argument('--password', required=True, help='Password for the admin user')
        parser.add_argument('--staff', action='store_true', help='Also grant Django admin site access')

    def handle(self, *args, **options):
        User = get_user_model()
        username = options['username']
        password = options['password']

        user, created = User.objects.get_or_create(username=username)

        changed = False
        if not user.is_active:
            user.is_active = True
            changed = True
        if options.get('staff') and not (user.is_staff and user.is_superuser):
            user.is_staff = True
            user.is_superuser = True
            changed = True

        user.set_password(password)
        user.save()

        account, _ = UserAccount.objects.get_or_create(user=user)
        if account.role != ROLE_ADMIN:
            account.role = ROLE_ADMIN
            account.save(update_fields=['role', 'updated_at'])
            changed = True

        if created:
            self.stdout.write(self.style.SUCCESS(f"Admin user created: username='{username}'"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Admin user updated: username='{username}'"))
        if changed:
            self.stdout.write(self.style.SUCCESS("Role/fields ensured (role=admin, is_active)."))
        else:
            self.stdout.write("No role or field changes were necessary.")
