"""Generators that expand GitOpsSet descriptions into template parameters."""

__version__ = "0.1.0"