from django.db import models
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.utils import timezone
from decimal import Decimal

from accounts.models import Department

User = get_user_model()


class Program(models.Model):
    """An event, training or project run by a department, with its approval workflow."""

    class Status(models.TextChoices):
        PENDING = 'Pending', 'Pending'
        APPROVED = 'Approved', 'Approved'
        REJECTED = 'Rejected', 'Rejected'
        ONGOING = 'Ongoing', 'Ongoing'
        COMPLETED = 'Completed', 'Completed'
        CANCELLED = 'Cancelled', 'Cancelled'

    class Structure(models.TextChoices):
        ONE_TIME = 'One-Time', 'One-Time'
        RECURRING = 'Recurring', 'Recurring'
        NUMERICAL = 'Numerical', 'Numerical'

    class ProgramType(models.TextChoices):
        TRAINING = 'Training', 'Training'
        EVENT = 'Event', 'Event'
        PROJECT = 'Project', 'Project'
        PITCH_IT = 'Pitch-IT', 'Pitch-IT'

    name = models.CharField(max_length=255)
    program_type = models.CharField(max_length=20, choices=ProgramType.choices, default=ProgramType.EVENT)
    structure = models.CharField(
        max_length=20,
        choices=Structure.choices,
        default=Structure.ONE_TIME,
        help_text="Fixed at creation; decides whether the program anchors a series"
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )

    # Series
    parent_program = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='versions',
    )
    batch_number = models.PositiveIntegerField(null=True, blank=True)
    custom_suffix = models.CharField(max_length=100, blank=True)
    version_label = models.CharField(max_length=100, blank=True)

    department = models.ForeignKey(Department, on_delete=models.PROTECT, related_name='programs')
    created_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name='created_programs')

    description = models.TextField(blank=True)
    course_title = models.CharField(max_length=255, blank=True)
    frequency = models.CharField(max_length=100, blank=True)
    date = models.DateTimeField(null=True, blank=True, help_text="Masters do not need a date")
    venue = models.CharField(max_length=255, blank=True)
    cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    amount_disbursed = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    participants_count = models.PositiveIntegerField(default=0, help_text="Expected attendees")
    startups_count = models.PositiveIntegerField(default=0)

    # Uploaded file paths, resolved against the file storage base URL for display
    flyer = models.CharField(max_length=500, blank=True)
    proposal = models.CharField(max_length=500, blank=True)

    # Public registration
    registration_open = models.BooleanField(default=True)
    registration_deadline = models.DateTimeField(null=True, blank=True)
    link_slug = models.SlugField(max_length=120, unique=True, null=True, blank=True)

    # Post-event / completion data
    actual_attendance = models.PositiveIntegerField(null=True, blank=True)
    actual_start = models.DateTimeField(null=True, blank=True)
    actual_end = models.DateTimeField(null=True, blank=True)
    drive_link = models.URLField(max_length=500, blank=True)
    final_document = models.CharField(max_length=500, blank=True)

    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        if self.parent_program_id and self.parent_program_id == self.pk:
            raise ValidationError({'parent_program': "A program cannot be its own parent."})
        if self.parent_program_id and self.parent_program.parent_program_id:
            raise ValidationError({'parent_program': "A version cannot be the parent of another program."})
        if self.parent_program_id and self.pk and self.versions.exists():
            raise ValidationError({'parent_program': "A program with versions cannot become a version."})

    @property
    def series_kind(self):
        from .utils.series import classify
        return classify(self)

    @property
    def display_name(self):
        from .utils.series import display_name
        return display_name(self)

    @property
    def is_registration_open(self):
        from .utils.registration import is_registration_open
        return is_registration_open(self)

    def set_status(self, new_status, actor=None):
        """Move the program to ``new_status`` through the transition guard."""
        from .utils.status_guard import set_status
        return set_status(self, new_status, actor)

    def roster(self):
        """Roster entries in registration order."""
        return self.participants.select_related('participant').order_by('position', 'pk')


class FormField(models.Model):
    """Custom question on a program's public registration form."""

    class FieldType(models.TextChoices):
        TEXT = 'text', 'Text Input'
        TEXTAREA = 'textarea', 'Long Text'
        NUMBER = 'number', 'Number'
        DATE = 'date', 'Date'
        SELECT = 'select', 'Multiple Choice'
        FILE = 'file', 'File Upload'

    program = models.ForeignKey(Program, on_delete=models.CASCADE, related_name='form_fields')
    label = models.CharField(max_length=255)
    field_type = models.CharField(max_length=20, choices=FieldType.choices, default=FieldType.TEXT)
    required = models.BooleanField(default=False)
    options = models.JSONField(
        default=list,
        blank=True,
        help_text="Choices for select questions, as a JSON array"
    )
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['order', 'pk']

    def __str__(self):
        return f"{self.program.name} - {self.label[:50]}"

    def clean(self):
        super().clean()
        if self.field_type == self.FieldType.SELECT and not self.options:
            raise ValidationError({'options': "Options are required for select questions."})
        if self.field_type != self.FieldType.SELECT and self.options:
            self.options = []

    def to_field_def(self):
        from .utils.registration import FieldDef
        return FieldDef(
            label=self.label,
            field_type=self.field_type,
            required=self.required,
            options=list(self.options or []),
        )


class Participant(models.Model):
    """Person registered for one or more programs."""

    GENDER_CHOICES = [
        ('Male', 'Male'),
        ('Female', 'Female'),
        ('Prefer not to say', 'Prefer not to say'),
    ]

    AGE_GROUP_CHOICES = [
        ('Under 18', 'Under 18'),
        ('18-25', '18-25'),
        ('26-35', '26-35'),
        ('36-50', '36-50'),
        ('50+', '50+'),
    ]

    full_name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    gender = models.CharField(max_length=20, choices=GENDER_CHOICES, blank=True)
    age_group = models.CharField(max_length=20, choices=AGE_GROUP_CHOICES, blank=True)
    state = models.CharField(max_length=100, blank=True)
    organization = models.CharField(max_length=255, blank=True)
    referral_source = models.CharField(max_length=255, blank=True)
    consent = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.full_name} <{self.email or self.phone}>"

    def clean(self):
        super().clean()
        if not (self.email or self.phone):
            raise ValidationError("At least one contact method (Email or Phone) is required")

    def save(self, *args, **kwargs):
        self.email = (self.email or '').strip().lower()
        self.phone = (self.phone or '').strip()
        self.full_name = (self.full_name or '').strip()
        super().save(*args, **kwargs)


class RosterEntry(models.Model):
    """
    One slot in a program's participant list.

    Historical data holds bare email strings instead of participant records, and
    deleting a participant leaves an empty slot behind. ``kind`` tells which of
    the three shapes an entry has.
    """

    STRUCTURED = 'structured'
    LEGACY = 'legacy'
    MISSING = 'missing'

    program = models.ForeignKey(Program, on_delete=models.CASCADE, related_name='participants')
    participant = models.ForeignKey(
        Participant,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='roster_entries'
    )
    legacy_email = models.CharField(max_length=255, blank=True)
    responses = models.JSONField(default=dict, blank=True, help_text="Answers to the program's custom questions")
    position = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['position', 'pk']
        verbose_name_plural = 'Roster entries'

    def __str__(self):
        if self.kind == self.STRUCTURED:
            return f"{self.program.name}: {self.participant.full_name}"
        if self.kind == self.LEGACY:
            return f"{self.program.name}: {self.legacy_email} (legacy)"
        return f"{self.program.name}: <missing>"

    @property
    def kind(self):
        if self.participant_id is not None:
            return self.STRUCTURED
        if self.legacy_email:
            return self.LEGACY
        return self.MISSING

    @property
    def email(self):
        if self.kind == self.STRUCTURED:
            return self.participant.email
        if self.kind == self.LEGACY:
            return self.legacy_email
        return ''


class ProgramUpdate(models.Model):
    """Message in a program's update thread."""
    program = models.ForeignKey(Program, on_delete=models.CASCADE, related_name='updates')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='program_updates')
    text = models.TextField()
    date = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['date', 'pk']

    def __str__(self):
        return f"{self.program.name} - {self.text[:50]}"
