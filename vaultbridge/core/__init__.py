"""Core modules for the vaultbridge plugin runtime."""
