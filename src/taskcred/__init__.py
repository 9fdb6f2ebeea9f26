"""taskcred - task tracking with punctuality credits."""

__version__ = "1.0.0"
