import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from batches.models import BatchUpload


@pytest.mark.django_db
def test_import_batch_csv(tmp_path, plain_user):
    path = tmp_path / "january.csv"
    path.write_text(
        "CaseNumber,CaseTitle,ContributorNickname,Amount,Month\n"
        "5,Food,zaid,25,1\n"
        "6,Rent,zaid,75,1\n",
        encoding="utf-8",
    )

    call_command("import_batch_csv", path=str(path), username="plain")

    batch = BatchUpload.objects.get()
    assert batch.name == "january.csv"
    assert batch.uploaded_by == plain_user
    assert batch.items.count() == 2


@pytest.mark.django_db
def test_import_batch_csv_unknown_user(tmp_path):
    path = tmp_path / "january.csv"
    path.write_text("CaseNumber,CaseTitle,ContributorNickname,Amount,Month\n5,Food,zaid,25,1\n")

    with pytest.raises(CommandError):
        call_command("import_batch_csv", path=str(path), username="nobody")
    assert not BatchUpload.objects.exists()
