"""Command-line interface for the library store."""
