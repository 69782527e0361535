from __future__ import annotations

from pathlib import Path
from typing import Any

import polars as pl
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from ev_route_planner.models import ChargingStation

UPDATE_FIELDS = [
    "name",
    "address",
    "provider",
    "latitude",
    "longitude",
    "total_points",
    "available_points",
    "power_kw",
    "price_per_kwh",
    "rating",
    "amenities",
]


class Command(BaseCommand):
    help = "Import and normalize the charging station catalog from a CSV using Polars."

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--csv-path",
            type=str,
            default=str(settings.PROJECT_ROOT / "charging-stations.csv"),
            help="Path to the source charging stations CSV",
        )
        parser.add_argument(
            "--replace",
            action="store_true",
            help="Delete existing stations before importing",
        )

    def handle(self, *_: Any, **options: Any) -> None:
        csv_path = Path(options["csv_path"])
        if not csv_path.exists():
            raise CommandError(f"CSV file does not exist: {csv_path}")

        frame = self._load_and_transform(csv_path)
        records = frame.to_dicts()

        if options["replace"]:
            ChargingStation.objects.all().delete()

        existing = {
            station.station_id: station
            for station in ChargingStation.objects.filter(
                station_id__in=[row["station_id"] for row in records]
            )
        }

        to_create: list[ChargingStation] = []
        to_update: list[ChargingStation] = []

        for row in records:
            station = existing.get(row["station_id"])
            if station is None:
                to_create.append(ChargingStation(**row))
                continue

            for field_name in UPDATE_FIELDS:
                setattr(station, field_name, row[field_name])
            to_update.append(station)

        if to_create:
            ChargingStation.objects.bulk_create(to_create, batch_size=1000)
        if to_update:
            ChargingStation.objects.bulk_update(to_update, UPDATE_FIELDS, batch_size=1000)

        self.stdout.write(
            self.style.SUCCESS(
                "Imported charging stations: "
                + (
                    f"{len(records)} rows normalized, "
                    f"{len(to_create)} created, {len(to_update)} updated"
                )
            )
        )

    @staticmethod
    def _load_and_transform(csv_path: Path) -> pl.DataFrame:
        frame = pl.read_csv(csv_path, infer_schema_length=5000)
        required_columns = {
            "id",
            "name",
            "address",
            "latitude",
            "longitude",
            "available_points",
            "total_points",
            "power_kw",
            "price_per_kwh",
        }
        missing_columns = required_columns.difference(frame.columns)
        if missing_columns:
            raise CommandError(f"Missing expected columns: {sorted(missing_columns)}")

        optional_columns = {
            "provider": pl.Utf8,
            "rating": pl.Float64,
            "amenities": pl.Utf8,
        }
        missing_optional = [
            pl.lit(None, dtype=dtype).alias(column)
            for column, dtype in optional_columns.items()
            if column not in frame.columns
        ]
        if missing_optional:
            frame = frame.with_columns(missing_optional)

        normalized = (
            frame.select(
                pl.col("id").cast(pl.Utf8, strict=False).str.strip_chars().alias("station_id"),
                pl.col("name")
                .cast(pl.Utf8, strict=False)
                .str.strip_chars()
                .fill_null("")
                .alias("name"),
                pl.col("address")
                .cast(pl.Utf8, strict=False)
                .str.strip_chars()
                .fill_null("")
                .alias("address"),
                pl.col("provider")
                .cast(pl.Utf8, strict=False)
                .str.strip_chars()
                .fill_null("")
                .alias("provider"),
                pl.col("latitude").cast(pl.Float64, strict=False).alias("latitude"),
                pl.col("longitude").cast(pl.Float64, strict=False).alias("longitude"),
                pl.col("total_points").cast(pl.Int64, strict=False).alias("total_points"),
                pl.col("available_points")
                .cast(pl.Int64, strict=False)
                .fill_null(0)
                .alias("available_points"),
                pl.col("power_kw").cast(pl.Float64, strict=False).alias("power_kw"),
                pl.col("price_per_kwh")
                .cast(pl.Float64, strict=False)
                .round(2)
                .alias("price_per_kwh"),
                pl.col("rating").cast(pl.Float64, strict=False).alias("rating"),
                pl.col("amenities")
                .cast(pl.Utf8, strict=False)
                .fill_null("")
                .str.split(";")
                .list.eval(pl.element().str.strip_chars())
                .list.eval(pl.element().filter(pl.element().str.len_chars() > 0))
                .alias("amenities"),
            )
            .filter(
                pl.col("station_id").is_not_null()
                & (pl.col("station_id").str.len_chars() > 0)
                & pl.col("latitude").is_between(-90.0, 90.0)
                & pl.col("longitude").is_between(-180.0, 180.0)
                & (pl.col("total_points") > 0)
                & (pl.col("available_points") >= 0)
                & pl.col("power_kw").is_not_null()
                & (pl.col("price_per_kwh") > 0)
            )
            .with_columns(
                pl.min_horizontal("available_points", "total_points").alias("available_points"),
                pl.when(pl.col("rating").is_between(0.0, 5.0))
                .then(pl.col("rating"))
                .otherwise(None)
                .alias("rating"),
            )
            .unique(subset=["station_id"], keep="last", maintain_order=True)
        )

        return normalized
