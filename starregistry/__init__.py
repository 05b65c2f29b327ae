"""Star Registry - an in-memory chain of wallet-signed star ownership claims."""

__version__ = "1.0.0"
