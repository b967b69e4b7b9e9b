from django.contrib.auth.models import AbstractUser, Group, BaseUserManager
from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _
from django.db.models.signals import post_migrate
from django.dispatch import receiver

ROLE_SUPER_ADMIN = 'Super Admin'
ROLE_ADMIN = 'Admin'
ROLE_STAFF = 'Staff'

DEFAULT_GROUPS = [ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_STAFF]


class Department(models.Model):
    """Organizational unit that owns programs and staff."""
    name = models.CharField(max_length=150, unique=True)
    description = models.TextField()
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='headed_departments',
        help_text="Head of department"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.name


class UserManager(BaseUserManager):
    """Manager for email-login accounts."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('An email address is required')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def get_by_email_case_insensitive(self, email):
        """Account whose email matches ignoring case, or None."""
        return self.filter(email__iexact=(email or '').strip()).first()

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('status', User.Status.ACTIVE)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractUser):
    """Staff member account; the email address is the login."""

    class Status(models.TextChoices):
        PENDING = 'Pending', 'Pending'
        ACTIVE = 'Active', 'Active'
        SUSPENDED = 'Suspended', 'Suspended'

    email = models.EmailField(_('email address'), unique=True)
    username = None  # Disable username field

    position = models.CharField(max_length=150, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    gender = models.CharField(max_length=20, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    departments = models.ManyToManyField(
        Department,
        blank=True,
        related_name='staff',
    )

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    def __str__(self):
        return self.email

    @property
    def display_name(self):
        return self.get_full_name() or self.email

    @property
    def is_super_admin(self):
        """Superusers and members of the Super Admin group see everything."""
        return self.is_superuser or self.groups.filter(name=ROLE_SUPER_ADMIN).exists()

    @property
    def is_app_admin(self):
        """Check if user has admin role in the application."""
        return self.groups.filter(name=ROLE_ADMIN).exists()

    def get_role_names(self):
        """Get a list of role names for the user."""
        return [group.name for group in self.groups.all()]

    def assign_role(self, role_name):
        group, _ = Group.objects.get_or_create(name=role_name)
        self.groups.add(group)


@receiver(post_migrate)
def create_default_groups(sender, **kwargs):
    """Create default groups if they don't exist."""
    for group_name in DEFAULT_GROUPS:
        Group.objects.get_or_create(name=group_name)
