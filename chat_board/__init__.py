"""Public append-only message board with IP-derived pseudonymous ids."""

__version__ = "1.0.0"
