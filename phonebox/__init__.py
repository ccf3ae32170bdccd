"""
Phone box slot checker.

Detects which slots of a photographed phone storage box hold a phone, joins
the slots against a student roster and flags devices whose color differs from
the learned baseline.
"""

__all__ = [
    "analysis",
    "attribution",
    "layout",
    "recognition",
    "identifiers",
    "io_utils",
    "pipeline",
    "roster",
    "types",
]
