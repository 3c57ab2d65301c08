"""Code Companion — stream a chat turn, catch its deploy directive, ship it."""

__version__ = "0.1.0"
