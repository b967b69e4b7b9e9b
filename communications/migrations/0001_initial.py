from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BroadcastLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("audience_type", models.CharField(choices=[("general", "All staff"), ("manual", "Manual list"), ("csv", "CSV upload"), ("program", "Program participants")], max_length=20)),
                ("target_programs", models.JSONField(blank=True, default=list, help_text="Names of the programs whose participants were targeted")),
                ("subject", models.CharField(max_length=255)),
                ("message", models.TextField()),
                ("recipient_count", models.PositiveIntegerField(default=0)),
                ("status", models.CharField(default="Sent", max_length=20)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("sender", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="broadcasts", to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["-created_at"]},
        ),
    ]
