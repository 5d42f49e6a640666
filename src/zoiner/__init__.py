"""Zoiner: turns images mentioned on Farcaster into Zora coins on Base."""

__version__ = "0.1.0"
