"""Low-level PostgreSQL wire protocol: frontend messages, binary value formats, authentication, escaping and catalog parsing."""

__version__ = "0.1.0"