"""Export the changed files of a git working tree as a folder or an archive."""

__version__ = "0.1.0"
