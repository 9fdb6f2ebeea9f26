"""Entrypoints - ways into the application."""
