from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("library", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="catalogpiece",
            name="work_fingerprint",
            field=models.CharField(blank=True, db_index=True, max_length=16),
        ),
        migrations.AddField(
            model_name="catalogfile",
            name="content_hash",
            field=models.CharField(blank=True, db_index=True, max_length=64),
        ),
    ]
