from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ChargingStation",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("station_id", models.CharField(max_length=64, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("address", models.CharField(max_length=255)),
                ("provider", models.CharField(blank=True, default="", max_length=120)),
                ("latitude", models.FloatField()),
                ("longitude", models.FloatField()),
                ("total_points", models.PositiveIntegerField(default=1)),
                ("available_points", models.PositiveIntegerField(default=0)),
                ("power_kw", models.FloatField()),
                ("price_per_kwh", models.DecimalField(decimal_places=2, max_digits=6)),
                ("rating", models.FloatField(blank=True, null=True)),
                ("amenities", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("provider", "name"),
                "indexes": [
                    models.Index(fields=["latitude", "longitude"], name="station_lat_lon_idx"),
                    models.Index(fields=["provider"], name="station_provider_idx"),
                ],
            },
        ),
    ]
