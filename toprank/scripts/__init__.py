"""Command-line entrypoints for Toprank."""
