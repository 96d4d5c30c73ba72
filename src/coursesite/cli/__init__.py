"""Command-line interface for coursesite."""
