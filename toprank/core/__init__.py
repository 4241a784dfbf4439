"""Toprank core infrastructure: configuration, logging, database, errors."""
