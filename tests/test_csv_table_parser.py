from __future__ import annotations

import unittest

from app.domain.import_errors import TableParseError
from app.services.csv_table_parser import parse_csv_table


class TestCSVTableParser(unittest.TestCase):
    def test_first_line_is_header_and_rows_are_keyed_by_it(self) -> None:
        table = parse_csv_table(b"name,address\nCafe Luna,1 Main St\nBakery,2 High St\n")

        self.assertEqual(table.headers, ("name", "address"))
        self.assertEqual(len(table.rows), 2)
        self.assertEqual(table.rows[0]["name"], "Cafe Luna")
        self.assertEqual(table.rows[1]["address"], "2 High St")

    def test_strips_utf8_bom_and_header_whitespace(self) -> None:
        table = parse_csv_table("\ufeff name , slug \nLuna,luna\n".encode("utf-8"))

        self.assertEqual(table.headers, ("name", "slug"))
        self.assertEqual(table.rows[0]["slug"], "luna")

    def test_blank_lines_are_skipped(self) -> None:
        table = parse_csv_table("name\n\nLuna\n\n\nSol\n")

        self.assertEqual([row["name"] for row in table.rows], ["Luna", "Sol"])

    def test_short_lines_read_as_empty_and_extra_cells_are_dropped(self) -> None:
        table = parse_csv_table("name,address,phone\nLuna\nSol,1 Main St,555,extra\n")

        self.assertEqual(dict(table.rows[0]), {"name": "Luna", "address": "", "phone": ""})
        self.assertEqual(dict(table.rows[1]), {"name": "Sol", "address": "1 Main St", "phone": "555"})

    def test_quoted_cells_keep_commas_and_newlines(self) -> None:
        table = parse_csv_table('name,description\n"Luna, Cafe","Coffee\nand cake"\n')

        self.assertEqual(table.rows[0]["name"], "Luna, Cafe")
        self.assertEqual(table.rows[0]["description"], "Coffee\nand cake")

    def test_empty_content_yields_no_headers_or_rows(self) -> None:
        table = parse_csv_table(b"")

        self.assertEqual(table.headers, ())
        self.assertEqual(table.rows, ())

    def test_header_only_yields_no_rows(self) -> None:
        table = parse_csv_table("name,address\n")

        self.assertEqual(table.headers, ("name", "address"))
        self.assertEqual(table.rows, ())

    def test_rows_are_read_only(self) -> None:
        table = parse_csv_table("name\nLuna\n")

        with self.assertRaises(TypeError):
            table.rows[0]["name"] = "Sol"  # type: ignore[index]

    def test_non_utf8_content_raises(self) -> None:
        with self.assertRaises(TableParseError) as context:
            parse_csv_table(b"name\n\xff\xfeLuna\n")

        self.assertIn("UTF-8", str(context.exception))

    def test_malformed_quoting_raises(self) -> None:
        with self.assertRaises(TableParseError) as context:
            parse_csv_table('name,address\n"Luna"x,1 Main St\n')

        self.assertIn("Invalid CSV format", str(context.exception))


if __name__ == "__main__":
    unittest.main()
