"""Command-line jobs, each runnable with ``python -m``."""
