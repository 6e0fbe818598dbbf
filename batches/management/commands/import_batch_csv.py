from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from batches.services.batch import create_batch
from batches.services.csv_import import CsvFormatError, generate_summary, parse_csv, validate_rows


class Command(BaseCommand):
    help = "Import a contributions CSV as a pending batch upload"

    def add_arguments(self, parser):
        parser.add_argument("--path", required=True, help="Path to the CSV file")
        parser.add_argument("--name", default="", help="Batch name (defaults to the file name)")
        parser.add_argument("--username", default="", help="User recorded as uploader")

    def handle(self, *args, **opts):
        path = opts["path"]
        with open(path, "r", encoding="utf-8-sig") as f:
            content = f.read()

        try:
            rows = parse_csv(content)
        except CsvFormatError as e:
            raise CommandError(e.message) from e

        valid, invalid = validate_rows(rows)
        for entry in invalid:
            self.stdout.write(self.style.WARNING(f"Skipped case {entry['row'].case_number!r}: {entry['error']}"))
        if not valid:
            raise CommandError("No valid rows found in CSV")

        user = None
        if opts["username"]:
            User = get_user_model()
            try:
                user = User.objects.get(username=opts["username"])
            except User.DoesNotExist as e:
                raise CommandError(f"User not found: {opts['username']}") from e

        name = opts["name"] or path.rsplit("/", 1)[-1]
        batch = create_batch(name, valid, uploaded_by=user, source_filename=path.rsplit("/", 1)[-1])
        summary = generate_summary(valid)

        self.stdout.write(self.style.SUCCESS(
            f"Batch {batch.pk}: items={summary['total_items']}, cases={summary['unique_cases']}, "
            f"contributors={summary['unique_contributors']}, total={summary['total_amount']}"
        ))
