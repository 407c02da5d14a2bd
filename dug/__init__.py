"""dug: a read-only terminal browser for Harper."""

__version__ = "0.1.0"
