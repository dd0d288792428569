"""coverspot - best-available book cover resolution with layered caching."""

__version__ = "0.1.0"
