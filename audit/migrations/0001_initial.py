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
            name="ActivityLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=[
                    ("CREATE_PROGRAM", "Create program"),
                    ("CREATE_VERSION", "Create version"),
                    ("UPDATE_PROGRAM", "Update program"),
                    ("UPDATE_STATUS", "Update status"),
                    ("COMPLETE_PROGRAM", "Complete program"),
                    ("UPDATE_REGISTRATION", "Update registration settings"),
                    ("ADD_PARTICIPANT", "Add participant"),
                    ("IMPORT_PARTICIPANTS", "Import participants"),
                    ("REMOVE_PARTICIPANT", "Remove participant"),
                    ("CREATE_DEPARTMENT", "Create department"),
                    ("DELETE_DEPARTMENT", "Delete department"),
                    ("ASSIGN_ADMIN", "Assign department admin"),
                    ("REVOKE_ADMIN", "Revoke department admin"),
                    ("MIGRATE_STAFF", "Migrate staff"),
                    ("DELETE_USER", "Delete user"),
                    ("SEND_BROADCAST", "Send broadcast"),
                ], max_length=50)),
                ("description", models.TextField()),
                ("meta", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("department", models.ForeignKey(blank=True, help_text="Department the action belongs to, used to scope the feed", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="activity_logs", to="accounts.department")),
                ("user", models.ForeignKey(blank=True, help_text="The user who performed the action", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="activity_logs", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["-created_at"], name="audit_activ_created_7c1f0e_idx"),
                    models.Index(fields=["department", "-created_at"], name="audit_activ_departm_3b9a2d_idx"),
                ],
            },
        ),
    ]
