"""Command line interface for vaultbridge."""
