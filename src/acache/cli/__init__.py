"""Command-line interface for the account cache."""
