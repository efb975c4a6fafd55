"""Core functionality for the function emulator."""
