"""Command line interface for the compounding vault."""
