"""rip: send files to the graveyard instead of unlinking them."""

__version__ = "0.4.0"
