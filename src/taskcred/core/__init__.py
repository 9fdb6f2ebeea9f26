"""Core domain - pure business logic with no infrastructure dependencies."""
