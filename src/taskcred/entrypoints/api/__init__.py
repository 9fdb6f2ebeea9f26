"""REST API entrypoint."""
