"""Build target routing, RPM spec generation and signing options for package specs."""

__version__ = "0.1.0"

__all__ = ["__version__"]