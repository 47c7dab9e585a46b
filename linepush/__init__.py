"""linepush: outbound LINE message normalization and composition service."""

__version__ = "0.3.0"
