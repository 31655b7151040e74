"""
Unit Tests for Statement Row Normalization

Tests cover:
- Date and amount coercion with warnings
- Debit/credit detection
- Row normalization defaults (category, method, description)
- Counterparty, IBAN and reference columns
- Column mapping suggestions and bank layouts
"""
import pytest

from lidgeld.models.fee import PaymentMethod
from lidgeld.models.transaction import BankFileType, BankPreset, TransactionType
from lidgeld.schemas.imports import ImportMapping
from lidgeld.services.bank.normalize import (
    is_debit,
    normalize_amount,
    normalize_date,
    normalize_row,
    normalize_rows,
    suggest_mapping,
)


@pytest.fixture
def mapping() -> ImportMapping:
    return ImportMapping(
        date_column="Datum",
        amount_column="Bedrag",
        description_column="Omschrijving",
    )


class TestNormalizeDate:
    """Tests for date coercion."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2025-03-01", "2025-03-01"),
            ("01/03/2025", "2025-03-01"),
            ("1/3/2025", "2025-03-01"),
            ("01-03-2025", "2025-03-01"),
            ("01.03.2025", "2025-03-01"),
            ("01032025", "2025-03-01"),
            ("20250301", "2025-03-01"),
            (" 2025-03-01 ", "2025-03-01"),
        ],
    )
    def test_recognised_formats(self, text, expected):
        result = normalize_date(text)
        assert result.value == expected
        assert result.defaulted is False

    def test_ambiguous_eight_digits_is_flagged(self):
        result = normalize_date("20120112")

        assert result.value == "2012-01-12"
        assert result.defaulted is True
        assert "dubbelzinnig" in result.reason

    @pytest.mark.parametrize("text", ["gisteren", "2025-02-30", "31/02/2025", ""])
    def test_unreadable_date_is_passed_through(self, text):
        result = normalize_date(text)

        assert result.value == text
        assert result.defaulted is True
        assert result.reason == f"Datum '{text}' niet herkend"


class TestNormalizeAmount:
    """Tests for amount coercion."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("25,50", 25.5),
            ("-25,50", 25.5),
            ("1.234,56", 1234.56),
            ("1,234.56", 1234.56),
            ("1.234", 1234.0),
            ("1.234.567", 1234567.0),
            ("12.5", 12.5),
            ("€ 100", 100.0),
            ("EUR 7,25", 7.25),
            ("D 40,00", 40.0),
        ],
    )
    def test_recognised_amounts(self, text, expected):
        result = normalize_amount(text)
        assert result.value == pytest.approx(expected)
        assert result.defaulted is False

    @pytest.mark.parametrize("text", ["", "abc", "--", "1,2,3.4.5"])
    def test_invalid_amount_is_zero(self, text):
        result = normalize_amount(text)

        assert result.value == 0.0
        assert result.defaulted is True
        assert result.reason == f"Bedrag '{text}' ongeldig, 0,00 gebruikt"

    def test_amount_is_never_negative(self):
        for text in ("-5", "-1.234,56", "- 0,01"):
            assert normalize_amount(text).value >= 0


class TestIsDebit:
    """Tests for direction detection."""

    def test_minus_sign(self):
        assert is_debit("-25,50", {}) is True

    def test_d_prefix(self):
        assert is_debit("D25,50", {}) is True

    @pytest.mark.parametrize("marker", ["D", "debet", "Debit", "DBIT"])
    def test_type_column_markers(self, marker):
        assert is_debit("25,50", {"type": marker}) is True

    def test_custom_type_column(self):
        assert is_debit("25,50", {"Af/Bij": "D"}, type_column="Af/Bij") is True

    @pytest.mark.parametrize("marker", ["C", "Credit", "", "bij"])
    def test_credit(self, marker):
        assert is_debit("25,50", {"type": marker}) is False


class TestNormalizeRow:
    """Tests for turning a mapped row into a transaction."""

    def test_expense_row(self, mapping):
        row = {"Datum": "01032025", "Bedrag": "-25,50", "Omschrijving": "  Huur zaal "}

        result = normalize_row(row, mapping, BankFileType.CSV)

        assert result.warnings == []
        assert result.transaction.date == "2025-03-01"
        assert result.transaction.amount == 25.5
        assert result.transaction.type == TransactionType.EXPENSE
        assert result.transaction.description == "Huur zaal"
        assert result.transaction.category == "Onbekend"
        assert result.transaction.method == PaymentMethod.OVERSCHRIJVING

    def test_income_row(self, mapping):
        row = {"Datum": "02/03/2025", "Bedrag": "100,00", "Omschrijving": "Lidgeld"}

        result = normalize_row(row, mapping, BankFileType.CSV)

        assert result.transaction.type == TransactionType.INCOME
        assert result.transaction.amount == 100.0

    def test_bank_formats_use_sepa(self):
        mapping = ImportMapping(date_column="datum", amount_column="bedrag")
        row = {"datum": "2025-03-01", "bedrag": "10,00", "type": "D"}

        for file_type in (BankFileType.MT940, BankFileType.CODA):
            result = normalize_row(row, mapping, file_type)
            assert result.transaction.method == PaymentMethod.SEPA
            assert result.transaction.type == TransactionType.EXPENSE

    def test_invalid_values_are_flagged_not_dropped(self, mapping):
        row = {"Datum": "gisteren", "Bedrag": "veel"}

        result = normalize_row(row, mapping, BankFileType.CSV)

        assert result.transaction.date == "gisteren"
        assert result.transaction.amount == 0.0
        assert result.transaction.description == ""
        assert len(result.warnings) == 2
        assert result.is_clean is False

    def test_missing_mapped_column(self, mapping):
        result = normalize_row({"Bedrag": "5,00"}, mapping, BankFileType.CSV)

        assert "Kolom 'Datum' ontbreekt in deze rij" in result.warnings

    def test_category_column(self):
        mapping = ImportMapping(date_column="d", amount_column="a", category_column="c")

        filled = normalize_row({"d": "2025-03-01", "a": "5", "c": "Zaalhuur"}, mapping, BankFileType.CSV)
        blank = normalize_row({"d": "2025-03-01", "a": "5", "c": " "}, mapping, BankFileType.CSV)

        assert filled.transaction.category == "Zaalhuur"
        assert filled.warnings == []
        assert blank.transaction.category == "Onbekend"
        assert blank.warnings == ["Geen categorie, 'Onbekend' gebruikt"]

    def test_normalize_rows_keeps_every_row(self, mapping):
        rows = [
            {"Datum": "01/03/2025", "Bedrag": "5,00"},
            {"Datum": "??", "Bedrag": "5,00"},
            {"Datum": "03/03/2025", "Bedrag": ""},
        ]

        result = normalize_rows(rows, mapping, BankFileType.CSV)

        assert len(result) == 3
        assert [bool(row.warnings) for row in result] == [False, True, True]

    def test_counterparty_iban_and_reference(self):
        mapping = ImportMapping(
            date_column="Datum",
            amount_column="Bedrag",
            counterparty_column="Naam tegenpartij",
            iban_column="Tegenrekening",
            reference_column="Referentie",
        )
        row = {
            "Datum": "2025-03-05",
            "Bedrag": "10,00",
            "Naam tegenpartij": " Yusuf Aydin ",
            "Tegenrekening": "be71 0961 2345 6769",
            "Referentie": "+++090/9337/55493+++",
        }

        result = normalize_row(row, mapping, BankFileType.CSV).transaction

        assert result.counterparty == "Yusuf Aydin"
        assert result.iban == "BE71096123456769"
        assert result.reference == "+++090/9337/55493+++"

    def test_empty_optional_cells_are_none(self):
        mapping = ImportMapping(
            date_column="d",
            amount_column="a",
            counterparty_column="c",
            iban_column="i",
            reference_column="r",
        )

        result = normalize_row({"d": "2025-03-05", "a": "1", "c": " ", "i": ""}, mapping, BankFileType.CSV)

        assert result.transaction.counterparty is None
        assert result.transaction.iban is None
        assert result.transaction.reference is None
        assert result.warnings == []


class TestSuggestMapping:
    """Tests for automatic column mapping."""

    def test_dutch_headers(self):
        mapping = suggest_mapping(["Datum", "Bedrag", "Omschrijving", "Categorie"])

        assert mapping.date_column == "Datum"
        assert mapping.amount_column == "Bedrag"
        assert mapping.description_column == "Omschrijving"
        assert mapping.category_column == "Categorie"

    def test_english_headers_with_spaces(self):
        mapping = suggest_mapping(["Booking Date", "Amount", "Description"])

        assert mapping.date_column == "Booking Date"
        assert mapping.amount_column == "Amount"

    def test_statement_headers(self):
        mapping = suggest_mapping(["datum", "valutadatum", "bedrag", "type", "omschrijving"])

        assert mapping.date_column == "datum"
        assert mapping.type_column == "type"

    def test_no_amount_column(self):
        assert suggest_mapping(["Datum", "Omschrijving"]) is None

    def test_counterparty_columns(self):
        mapping = suggest_mapping(["Datum", "Bedrag", "Tegenpartij", "Rekening tegenpartij", "Referentie"])

        assert mapping.counterparty_column == "Tegenpartij"
        assert mapping.iban_column == "Rekening tegenpartij"
        assert mapping.reference_column == "Referentie"


class TestBankLayouts:
    """Tests for the CSV layouts of the major Belgian banks."""

    ING_HEADERS = [
        "Datum", "Naam rekeninghouder", "Naam tegenpartij", "Tegenrekening", "Code",
        "Af Bij", "Bedrag (EUR)", "Referentie", "Mededelingen",
    ]
    KBC_HEADERS = [
        "Rekeningnummer", "Rubrieknaam", "Datum", "Afschriftnummer", "Naam tegenpartij",
        "Rekening tegenpartij", "Munt", "Bedrag", "Omschrijving", "Referentie",
    ]

    def test_ing(self):
        mapping = suggest_mapping(self.ING_HEADERS, BankPreset.ING)

        assert mapping.date_column == "Datum"
        assert mapping.amount_column == "Bedrag (EUR)"
        assert mapping.description_column == "Mededelingen"
        assert mapping.counterparty_column == "Naam tegenpartij"
        assert mapping.iban_column == "Tegenrekening"
        assert mapping.reference_column == "Referentie"
        assert mapping.type_column == "Af Bij"

    def test_kbc(self):
        mapping = suggest_mapping(self.KBC_HEADERS, BankPreset.KBC)

        assert mapping.date_column == "Datum"
        assert mapping.amount_column == "Bedrag"
        assert mapping.description_column == "Omschrijving"
        assert mapping.counterparty_column == "Naam tegenpartij"
        assert mapping.iban_column == "Rekening tegenpartij"
        assert mapping.reference_column == "Referentie"

    def test_bank_given_as_text(self):
        mapping = suggest_mapping(self.ING_HEADERS, "ING")
        assert mapping.amount_column == "Bedrag (EUR)"

    def test_layout_positions_win_over_header_names(self):
        headers = ["Boekingsdatum", "Datum", "Naam", "IBAN", "-", "-", "Bedrag", "Ref", "Details"]

        mapping = suggest_mapping(headers, BankPreset.ING)

        assert mapping.date_column == "Boekingsdatum"
        assert mapping.iban_column == "IBAN"
        assert mapping.description_column == "Details"

    def test_short_export_falls_back_to_header_names(self):
        mapping = suggest_mapping(["Datum", "Bedrag", "Omschrijving"], BankPreset.KBC)

        assert mapping.date_column == "Datum"
        assert mapping.amount_column == "Bedrag"
        assert mapping.description_column == "Omschrijving"
        assert mapping.counterparty_column is None

    def test_header_is_used_once(self):
        # "Omschrijving" holds the date by position, so it is not also the description
        mapping = suggest_mapping(["Omschrijving", "a", "b", "c", "d", "e", "Bedrag"], BankPreset.ING)

        assert mapping.date_column == "Omschrijving"
        assert mapping.amount_column == "Bedrag"
        assert mapping.description_column is None
