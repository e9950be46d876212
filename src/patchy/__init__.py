"""patchy - apply pull requests and local patches on top of a branch."""

__version__ = "1.0.0"
