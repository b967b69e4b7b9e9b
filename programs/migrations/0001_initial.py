from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Participant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("full_name", models.CharField(max_length=255)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("phone", models.CharField(blank=True, max_length=30)),
                ("gender", models.CharField(blank=True, choices=[("Male", "Male"), ("Female", "Female"), ("Prefer not to say", "Prefer not to say")], max_length=20)),
                ("age_group", models.CharField(blank=True, choices=[("Under 18", "Under 18"), ("18-25", "18-25"), ("26-35", "26-35"), ("36-50", "36-50"), ("50+", "50+")], max_length=20)),
                ("state", models.CharField(blank=True, max_length=100)),
                ("organization", models.CharField(blank=True, max_length=255)),
                ("referral_source", models.CharField(blank=True, max_length=255)),
                ("consent", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={"ordering": ["-created_at"]},
        ),
        migrations.CreateModel(
            name="Program",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("program_type", models.CharField(choices=[("Training", "Training"), ("Event", "Event"), ("Project", "Project"), ("Pitch-IT", "Pitch-IT")], default="Event", max_length=20)),
                ("structure", models.CharField(choices=[("One-Time", "One-Time"), ("Recurring", "Recurring"), ("Numerical", "Numerical")], default="One-Time", help_text="Fixed at creation; decides whether the program anchors a series", max_length=20)),
                ("status", models.CharField(choices=[("Pending", "Pending"), ("Approved", "Approved"), ("Rejected", "Rejected"), ("Ongoing", "Ongoing"), ("Completed", "Completed"), ("Cancelled", "Cancelled")], db_index=True, default="Pending", max_length=20)),
                ("batch_number", models.PositiveIntegerField(blank=True, null=True)),
                ("custom_suffix", models.CharField(blank=True, max_length=100)),
                ("version_label", models.CharField(blank=True, max_length=100)),
                ("description", models.TextField(blank=True)),
                ("course_title", models.CharField(blank=True, max_length=255)),
                ("frequency", models.CharField(blank=True, max_length=100)),
                ("date", models.DateTimeField(blank=True, help_text="Masters do not need a date", null=True)),
                ("venue", models.CharField(blank=True, max_length=255)),
                ("cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("amount_disbursed", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("participants_count", models.PositiveIntegerField(default=0, help_text="Expected attendees")),
                ("startups_count", models.PositiveIntegerField(default=0)),
                ("flyer", models.CharField(blank=True, max_length=500)),
                ("proposal", models.CharField(blank=True, max_length=500)),
                ("registration_open", models.BooleanField(default=True)),
                ("registration_deadline", models.DateTimeField(blank=True, null=True)),
                ("link_slug", models.SlugField(blank=True, max_length=120, null=True, unique=True)),
                ("actual_attendance", models.PositiveIntegerField(blank=True, null=True)),
                ("actual_start", models.DateTimeField(blank=True, null=True)),
                ("actual_end", models.DateTimeField(blank=True, null=True)),
                ("drive_link", models.URLField(blank=True, max_length=500)),
                ("final_document", models.CharField(blank=True, max_length=500)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="created_programs", to=settings.AUTH_USER_MODEL)),
                ("department", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="programs", to="accounts.department")),
                ("parent_program", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="versions", to="programs.program")),
            ],
            options={"ordering": ["-created_at"]},
        ),
        migrations.CreateModel(
            name="FormField",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("label", models.CharField(max_length=255)),
                ("field_type", models.CharField(choices=[("text", "Text Input"), ("textarea", "Long Text"), ("number", "Number"), ("date", "Date"), ("select", "Multiple Choice"), ("file", "File Upload")], default="text", max_length=20)),
                ("required", models.BooleanField(default=False)),
                ("options", models.JSONField(blank=True, default=list, help_text="Choices for select questions, as a JSON array")),
                ("order", models.PositiveIntegerField(default=0)),
                ("program", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="form_fields", to="programs.program")),
            ],
            options={"ordering": ["order", "pk"]},
        ),
        migrations.CreateModel(
            name="RosterEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("legacy_email", models.CharField(blank=True, max_length=255)),
                ("responses", models.JSONField(blank=True, default=dict, help_text="Answers to the program's custom questions")),
                ("position", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("participant", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="roster_entries", to="programs.participant")),
                ("program", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="participants", to="programs.program")),
            ],
            options={"ordering": ["position", "pk"], "verbose_name_plural": "Roster entries"},
        ),
        migrations.CreateModel(
            name="ProgramUpdate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("text", models.TextField()),
                ("date", models.DateTimeField(default=django.utils.timezone.now)),
                ("program", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="updates", to="programs.program")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="program_updates", to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["date", "pk"]},
        ),
    ]
