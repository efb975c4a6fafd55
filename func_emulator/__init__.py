"""Func Emulator - Run cloud functions locally in isolated Docker containers."""

__version__ = "0.1.0"

# Export main CLI for convenience
from .cli.main import cli

__all__ = ['cli']
