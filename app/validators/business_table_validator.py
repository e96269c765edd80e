"""
app/validators/business_table_validator.py

Whole-table structural checks run before any reference fetch or write.
"""

from __future__ import annotations

from app.domain.business_import import ParsedTable, StructuralProblem, row_number_for

REQUIRED_COLUMNS: tuple[str, ...] = ("name",)


def validate_table(table: ParsedTable) -> list[StructuralProblem]:
    """
    Return structural problems in check order; an empty list means valid.

    Checks:
        1. At least one data row.
        2. Every required column is present in the header.
        3. Every data row has a non-blank ``name``. Skipped when the column
           itself is missing.
    """

    if not table.rows:
        return [StructuralProblem(message="CSV file is empty")]

    problems: list[StructuralProblem] = []

    missing_columns = [column for column in REQUIRED_COLUMNS if column not in table.headers]
    if missing_columns:
        problems.append(
            StructuralProblem(message=f"Missing required columns: {', '.join(missing_columns)}")
        )
        return problems

    blank_name_rows = tuple(
        row_number_for(index)
        for index, row in enumerate(table.rows)
        if not (row.get("name") or "").strip()
    )
    if blank_name_rows:
        problems.append(
            StructuralProblem(
                message=f"Rows with missing names: {', '.join(str(row) for row in blank_name_rows)}",
                rows=blank_name_rows,
            )
        )

    return problems
