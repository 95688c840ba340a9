# clinic_core/growth/management/commands/load_who_percentiles.py

import csv

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from clinic_core.growth.analysis import INDICATORS
from clinic_core.growth.models import WHOPercentileRow
from clinic_core.patients.models import Sex

REQUIRED_COLUMNS = ("indicator", "sex", "age_months", "p3", "p15", "p50", "p85", "p97")
OPTIONAL_COLUMNS = ("l", "m", "s")


def _optional_float(raw):
    raw = (raw or "").strip()
    return float(raw) if raw else None


class Command(BaseCommand):
    help = "Load growth-standard percentile rows from a CSV file (upsert on indicator/sex/age_months; l,m,s columns optional)."

    def add_arguments(self, parser):
        parser.add_argument("csv_path", type=str)

    @transaction.atomic
    def handle(self, *args, **options):
        path = options["csv_path"]
        try:
            fh = open(path, newline="", encoding="utf-8")
        except OSError as e:
            raise CommandError(f"Cannot open {path}: {e}")

        created = updated = 0
        with fh:
            reader = csv.DictReader(fh)
            missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
            if missing:
                raise CommandError(f"Missing columns: {', '.join(missing)}")

            for line_no, row in enumerate(reader, start=2):
                indicator = row["indicator"].strip()
                sex = row["sex"].strip().upper()
                if indicator not in INDICATORS:
                    raise CommandError(f"Line {line_no}: unknown indicator '{indicator}'")
                if sex not in Sex.values:
                    raise CommandError(f"Line {line_no}: unknown sex '{sex}'")

                try:
                    age_months = int(row["age_months"])
                    values = {k: float(row[k]) for k in ("p3", "p15", "p50", "p85", "p97")}
                    lms = {k: _optional_float(row.get(k)) for k in OPTIONAL_COLUMNS}
                except ValueError as e:
                    raise CommandError(f"Line {line_no}: {e}")

                ordered = [values[k] for k in ("p3", "p15", "p50", "p85", "p97")]
                if ordered != sorted(ordered):
                    raise CommandError(f"Line {line_no}: percentiles must be non-decreasing")

                _, was_created = WHOPercentileRow.objects.update_or_create(
                    indicator=indicator,
                    sex=sex,
                    age_months=age_months,
                    defaults={**values, **lms},
                )
                if was_created:
                    created += 1
                else:
                    updated += 1

        self.stdout.write(self.style.SUCCESS(f"WHO percentiles loaded. Created: {created}, updated: {updated}"))
