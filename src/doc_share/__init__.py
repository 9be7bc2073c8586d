"""Time-limited, access-scoped document share links."""

__version__ = "0.1.0"
