"""Command line interface for taxbridge."""
