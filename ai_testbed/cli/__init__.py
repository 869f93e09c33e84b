"""Command-line tools for the shared test containers."""
