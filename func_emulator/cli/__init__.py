"""Command line interface for the function emulator."""
