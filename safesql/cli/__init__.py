"""Command line interface for SafeSQL."""
