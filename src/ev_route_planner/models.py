from __future__ import annotations

from django.db import models


class ChargingStation(models.Model):
    objects = models.Manager["ChargingStation"]()

    station_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255)
    provider = models.CharField(max_length=120, blank=True, default="")

    latitude = models.FloatField()
    longitude = models.FloatField()

    total_points = models.PositiveIntegerField(default=1)
    available_points = models.PositiveIntegerField(default=0)
    power_kw = models.FloatField()
    price_per_kwh = models.DecimalField(max_digits=6, decimal_places=2)
    rating = models.FloatField(null=True, blank=True)
    amenities = models.JSONField(default=list, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("provider", "name")
        indexes = (
            models.Index(fields=["latitude", "longitude"], name="station_lat_lon_idx"),
            models.Index(fields=["provider"], name="station_provider_idx"),
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.address})"
