from django.contrib import admin

from ev_route_planner.models import ChargingStation


@admin.register(ChargingStation)
class ChargingStationAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "provider",
        "address",
        "available_points",
        "total_points",
        "price_per_kwh",
        "rating",
    )
    list_filter = ("provider",)
    search_fields = ("station_id", "name", "address", "provider")
    ordering = ("provider", "name")
