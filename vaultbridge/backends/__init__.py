"""Secret backends shipped with vaultbridge.

Backends are resolved by name through the backend registry; importing
this package does not import any backend (and so no client library).
"""
