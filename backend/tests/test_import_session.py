"""
Tests for the bank statement import workflow.

Covers the step transitions (UPLOAD → MAPPING → PREVIEW → COMPLETE),
going back, and the error paths that keep the user on the current step.
"""
import pytest

from lidgeld.core.exceptions import ImportSessionError
from lidgeld.models.transaction import BankFileType, TransactionType
from lidgeld.schemas.imports import ImportMapping
from lidgeld.services.bank.import_session import ImportSession, ImportStep


CSV_EXPORT = (
    "Datum;Bedrag;Omschrijving\n"
    "01/03/2025;-25,50;Huur zaal\n"
    "02/03/2025;100,00;Lidgeld\n"
    "??;5,00;Gift\n"
)


@pytest.fixture
def session() -> ImportSession:
    return ImportSession()


@pytest.fixture
def mapped_session(session) -> ImportSession:
    session.upload("export.csv", CSV_EXPORT)
    session.apply_mapping(session.suggested_mapping)
    return session


class TestUpload:
    """Tests for the upload step."""

    def test_successful_upload_moves_to_mapping(self, session):
        result = session.upload("export.csv", CSV_EXPORT)

        assert result.success is True
        assert session.step == ImportStep.MAPPING
        assert session.file_type == BankFileType.CSV
        assert session.headers == ["Datum", "Bedrag", "Omschrijving"]
        assert len(session.rows) == 3
        assert session.error is None

    def test_suggested_mapping(self, session):
        session.upload("export.csv", CSV_EXPORT)

        assert session.suggested_mapping.date_column == "Datum"
        assert session.suggested_mapping.amount_column == "Bedrag"
        assert session.suggested_mapping.description_column == "Omschrijving"

    def test_failed_upload_stays_at_upload(self, session):
        result = session.upload("export.csv", "Datum;Bedrag\n")

        assert result.success is False
        assert session.step == ImportStep.UPLOAD
        assert session.error == "CSV bestand moet minimaal 2 lijnen bevatten"

    def test_unknown_format(self, session):
        session.upload("notes.txt", "hello world")

        assert session.step == ImportStep.UPLOAD
        assert session.error.startswith("Onbekend bestandsformaat")

    def test_retry_after_failure(self, session):
        session.upload("export.csv", "")
        assert session.error == "Bestand is leeg"

        session.upload("export.csv", CSV_EXPORT)
        assert session.step == ImportStep.MAPPING
        assert session.error is None

    def test_declared_file_type(self, session):
        result = session.upload("upload.bin", "Datum;Bedrag\n01/03/2025;5,00\n", BankFileType.CSV)

        assert result.success is True
        assert session.file_type == BankFileType.CSV

    def test_sample_rows(self, session):
        session.upload("export.csv", CSV_EXPORT)
        assert session.sample_rows[0]["Omschrijving"] == "Huur zaal"

    def test_upload_twice_is_rejected(self, session):
        session.upload("export.csv", CSV_EXPORT)

        with pytest.raises(ImportSessionError):
            session.upload("export.csv", CSV_EXPORT)


class TestMapping:
    """Tests for the mapping step."""

    def test_mapping_normalizes_all_rows(self, mapped_session):
        assert mapped_session.step == ImportStep.PREVIEW
        assert len(mapped_session.normalized) == 3
        assert mapped_session.flagged_count == 1

        first = mapped_session.normalized[0].transaction
        assert first.type == TransactionType.EXPENSE
        assert first.amount == 25.5
        assert first.date == "2025-03-01"

    def test_unknown_column_is_rejected(self, session):
        session.upload("export.csv", CSV_EXPORT)

        with pytest.raises(ImportSessionError, match="Kolom 'Boekdatum' bestaat niet"):
            session.apply_mapping(ImportMapping(date_column="Boekdatum", amount_column="Bedrag"))
        assert session.step == ImportStep.MAPPING

    def test_mapping_before_upload_is_rejected(self, session):
        with pytest.raises(ImportSessionError):
            session.apply_mapping(ImportMapping(date_column="Datum", amount_column="Bedrag"))

    def test_preview_is_limited(self, session):
        lines = ["Datum;Bedrag"] + [f"01/03/2025;{i},00" for i in range(1, 26)]
        session.upload("export.csv", "\n".join(lines))
        session.apply_mapping(session.suggested_mapping)

        assert len(session.normalized) == 25
        assert len(session.preview_rows) == 10


class TestConfirmAndBack:
    """Tests for confirming and navigating back."""

    def test_confirm_submits_transactions(self, mapped_session):
        submitted = []

        transactions = mapped_session.confirm(submitted.extend)

        assert mapped_session.step == ImportStep.COMPLETE
        assert len(transactions) == 3
        assert submitted == transactions

    def test_confirm_without_callback(self, mapped_session):
        assert len(mapped_session.confirm()) == 3

    def test_confirm_twice_is_rejected(self, mapped_session):
        mapped_session.confirm()

        with pytest.raises(ImportSessionError):
            mapped_session.confirm()

    def test_back_from_preview_clears_normalized_rows(self, mapped_session):
        assert mapped_session.back() == ImportStep.MAPPING
        assert mapped_session.normalized == []
        assert len(mapped_session.rows) == 3

    def test_back_from_mapping(self, session):
        session.upload("export.csv", CSV_EXPORT)
        assert session.back() == ImportStep.UPLOAD

    def test_back_from_upload_is_rejected(self, session):
        with pytest.raises(ImportSessionError):
            session.back()

    def test_reset(self, mapped_session):
        mapped_session.reset()

        assert mapped_session.step == ImportStep.UPLOAD
        assert mapped_session.rows == []
        assert mapped_session.normalized == []
