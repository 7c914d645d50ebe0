"""Request-time access control and input validation for web services."""

__version__ = "0.1.0"
