"""MLS-compliant AI photo editing for real-estate listings."""

__version__ = "1.0.0"
