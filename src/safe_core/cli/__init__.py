"""Command line tools for Safe Core."""
