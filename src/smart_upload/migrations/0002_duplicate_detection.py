from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("smart_upload", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="uploadsession",
            name="source_sha256",
            field=models.CharField(blank=True, db_index=True, max_length=64),
        ),
        migrations.AddField(
            model_name="uploadsession",
            name="duplicate_check",
            field=models.JSONField(blank=True, null=True),
        ),
    ]
