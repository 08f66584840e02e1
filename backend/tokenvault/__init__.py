"""tokenvault - credential lifecycle and refresh-token rotation."""

__version__ = "0.1.0"
