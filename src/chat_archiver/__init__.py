"""Archive AI chat conversations from rendered chat pages."""

__version__ = "0.1.0"
