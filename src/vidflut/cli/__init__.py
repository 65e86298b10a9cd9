"""CLI module for the vidflut package."""

from vidflut.cli.cli import cli

__all__ = ["cli"]
