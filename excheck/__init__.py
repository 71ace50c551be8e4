"""excheck: watch-and-verify engine for self-paced coding exercises."""

__version__ = "5.2.1"
