"""git-sync: keep a directory in sync with a git branch, published atomically."""

__version__ = "0.1.0"
