from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model
from django.db import transaction

from accounts.models import Department, ROLE_SUPER_ADMIN

DEFAULT_DEPARTMENTS = [
    "Directorate",
    "ICT",
    "Human Resources",
    "Operations",
    "Finance",
    "Programs",
    "Media & Communications",
]


class Command(BaseCommand):
    help = 'Create the default departments and, optionally, the first Super Admin account'

    def add_arguments(self, parser):
        parser.add_argument(
            '--admin-email',
            type=str,
            help='Email of a Super Admin to create and attach to the Directorate',
        )
        parser.add_argument(
            '--admin-password',
            type=str,
            help='Password for the Super Admin (required with --admin-email)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be done without actually doing it',
        )

    def handle(self, *args, **options):
        User = get_user_model()
        dry_run = options['dry_run']
        admin_email = options['admin_email']

        if admin_email and not options['admin_password']:
            raise CommandError('--admin-password is required with --admin-email')

        if dry_run:
            self.stdout.write(self.style.WARNING('DRY RUN MODE - No changes will be made'))

        with transaction.atomic():
            created = 0
            for name in DEFAULT_DEPARTMENTS:
                if Department.objects.filter(name=name).exists():
                    self.stdout.write(f'  Department "{name}" already exists')
                    continue
                if not dry_run:
                    Department.objects.create(name=name, description=f'{name} Department')
                created += 1
                self.stdout.write(f'  Created department "{name}"')

            if admin_email:
                if User.objects.get_by_email_case_insensitive(admin_email):
                    self.stdout.write(self.style.WARNING(f'User {admin_email} already exists; skipping'))
                elif not dry_run:
                    user = User.objects.create_user(
                        email=admin_email,
                        password=options['admin_password'],
                        status=User.Status.ACTIVE,
                    )
                    user.assign_role(ROLE_SUPER_ADMIN)
                    directorate = Department.objects.filter(name='Directorate').first()
                    if directorate:
                        user.departments.add(directorate)
                    self.stdout.write(f'  Created Super Admin {admin_email}')

        action = "Would create" if dry_run else "Created"
        self.stdout.write(self.style.SUCCESS(f'{action} {created} departments.'))
