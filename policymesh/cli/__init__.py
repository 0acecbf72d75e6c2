"""Command-line interface for policymesh."""
