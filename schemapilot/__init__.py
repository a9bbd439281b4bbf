"""Natural-language driven table, endpoint and hook generator."""

__version__ = "0.1.0"
