"""contractkernel: declarative command contract interpreter."""

__version__ = "0.1.0"
