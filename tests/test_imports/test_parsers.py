"""Tests for CSV row normalization and uploaded file parsing."""

import pytest

from labboard.config import Settings
from labboard.imports.exceptions import CSVInputError
from labboard.imports.parsers import normalize_header, normalize_row, normalize_rows
from labboard.imports.schemas import CSVSubject
from labboard.imports.upload import check_upload, parse_csv, read_upload


class TestNormalizeHeader:
    """Tests for header normalization."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("subject_name", "subject_name"),
            (" Subject Name ", "subject_name"),
            ("SUBCATEGORY\tNAME", "subcategory_name"),
            ("Category", "category"),
        ],
    )
    def test_normalize(self, header, expected):
        assert normalize_header(header) == expected

    def test_row_values_trimmed(self):
        assert normalize_row({"Name ": "  CRISPR ", "Category": None}) == {
            "name": "CRISPR",
            "category": "",
        }


class TestNormalizeRows:
    """Tests for normalize_rows."""

    def test_subjects_and_subcategories(self):
        data = normalize_rows(
            [
                {"subject_name": "CRISPR", "subcategory_name": "Genetics"},
                {"subject_name": "Mendel", "subcategory_name": "genetics"},
                {"subject_name": "Microscopy", "subcategory_name": "Imaging"},
            ]
        )

        assert data.subjects == [
            CSVSubject(name="CRISPR", category="Genetics"),
            CSVSubject(name="Mendel", category="genetics"),
            CSVSubject(name="Microscopy", category="Imaging"),
        ]
        # Distinct case-insensitively, first casing kept
        assert data.subcategories == ["Genetics", "Imaging"]
        assert data.row_count == 3

    def test_sentinels_route_to_terms(self):
        data = normalize_rows(
            [
                {"name": "zebrafish", "category": "_include"},
                {"name": "plants", "category": "_EXCLUDE"},
                {"name": "CRISPR", "category": "Genetics"},
            ]
        )

        assert data.include_terms == ["zebrafish"]
        assert data.exclude_terms == ["plants"]
        assert [s.name for s in data.subjects] == ["CRISPR"]
        assert data.subcategories == ["Genetics"]

    def test_missing_and_uncategorized_category(self):
        data = normalize_rows(
            [
                {"term": "CRISPR"},
                {"term": "Mendel", "subcategory": "Uncategorized"},
            ]
        )

        assert data.subjects == [CSVSubject(name="CRISPR"), CSVSubject(name="Mendel")]
        assert data.subcategories == []

    def test_column_aliases_and_raw_headers(self):
        data = normalize_rows([{"Subject Name": " CRISPR ", "Subcategory Name": "Genetics"}])
        assert data.subjects == [CSVSubject(name="CRISPR", category="Genetics")]

    def test_no_dedup_at_this_stage(self):
        data = normalize_rows(
            [
                {"name": "CRISPR", "category": "A"},
                {"name": "crispr", "category": "A"},
                {"name": "plants", "category": "_exclude"},
                {"name": "Plants", "category": "_exclude"},
            ]
        )

        assert len(data.subjects) == 2
        assert data.exclude_terms == ["plants", "Plants"]

    def test_rows_without_name_ignored(self):
        data = normalize_rows([{"name": "", "category": "A"}, {"name": "CRISPR"}])
        assert [s.name for s in data.subjects] == ["CRISPR"]

    def test_no_rows(self):
        with pytest.raises(CSVInputError, match="No data rows"):
            normalize_rows([])

    def test_no_subject_column(self):
        with pytest.raises(CSVInputError, match="no subject column"):
            normalize_rows([{"title": "CRISPR"}])

    def test_not_a_list(self):
        with pytest.raises(CSVInputError):
            normalize_rows("name\nCRISPR")

    def test_row_not_a_mapping(self):
        with pytest.raises(CSVInputError, match="Row 2"):
            normalize_rows([{"name": "CRISPR"}, ["Mendel"]])

    def test_too_many_rows(self):
        rows = [{"name": f"S{i}"} for i in range(4)]
        with pytest.raises(CSVInputError, match="more than 3 rows"):
            normalize_rows(rows, max_rows=3)


class TestParseCsv:
    """Tests for reading uploaded CSV bytes."""

    def test_comma_separated(self):
        rows = parse_csv(b"subject_name,subcategory_name\nCRISPR,Genetics\nMendel,Genetics\n")
        assert rows == [
            {"subject_name": "CRISPR", "subcategory_name": "Genetics"},
            {"subject_name": "Mendel", "subcategory_name": "Genetics"},
        ]

    def test_semicolon_separated_with_bom(self):
        content = "\ufeffname;category\nCRISPR;Genetics\nMendel;Genetics\n".encode("utf-8")
        rows = parse_csv(content)
        assert rows[0] == {"name": "CRISPR", "category": "Genetics"}

    def test_quoted_values(self):
        rows = parse_csv(b'name,category\n"Imaging, confocal",Methods\n')
        assert rows[0]["name"] == "Imaging, confocal"

    def test_not_utf8(self):
        with pytest.raises(CSVInputError, match="UTF-8"):
            parse_csv(b"name\n\xff\xfe\x00")

    def test_empty_file(self):
        with pytest.raises(CSVInputError, match="empty"):
            parse_csv(b"  \n")

    def test_headers_only_gives_no_rows(self):
        assert parse_csv(b"name,category\n") == []


class TestCheckUpload:
    """Tests for host upload constraints."""

    def test_wrong_extension(self):
        with pytest.raises(CSVInputError, match=".csv"):
            check_upload("subjects.xlsx", 10, Settings())

    def test_extension_case_insensitive(self):
        check_upload("SUBJECTS.CSV", 10, Settings())

    def test_too_large(self):
        settings = Settings(max_upload_bytes=100)
        with pytest.raises(CSVInputError, match="File too large"):
            check_upload("subjects.csv", 101, settings)

    def test_read_upload(self):
        rows = read_upload("subjects.csv", b"name\nCRISPR\n", Settings())
        assert rows == [{"name": "CRISPR"}]
