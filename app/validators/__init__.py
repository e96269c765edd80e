"""
app/validators package marker.
"""

from app.validators.business_table_validator import REQUIRED_COLUMNS, validate_table

__all__ = [
    "REQUIRED_COLUMNS",
    "validate_table",
]
