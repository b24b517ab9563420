"""CLI package for tracelens."""
