"""
app/mappers package marker.
"""

from app.mappers.business_record_builder import build_record, slugify

__all__ = [
    "build_record",
    "slugify",
]
