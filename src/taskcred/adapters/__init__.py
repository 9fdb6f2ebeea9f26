"""Adapters - infrastructure implementations of the core interfaces."""
