"""SAMS: property-management accounting for HOA dues, water billing and payments."""

__version__ = "0.1.0"
