"""CLI commands for the function emulator."""
