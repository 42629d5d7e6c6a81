"""User account backend: registration, activation, login and password reset."""

__version__ = "0.1.0"
