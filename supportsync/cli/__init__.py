"""CLI package public API."""

from .click_app import cli

__all__ = ["cli"]
