"""Selection reporting: YAML cycle reports."""

from rts.reporting.reporter import Reporter

__all__ = [
    "Reporter",
]
