"""Class-level regression test selection engine."""
