"""Research pipeline: search, fetch, synthesize and score research items."""

__version__ = "0.1.0"
