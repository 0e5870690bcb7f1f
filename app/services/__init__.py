"""Service layer helpers for the council portal."""
