"""Schemas package for the inbound event and metadata contracts.

Inbound payloads from the social network are loose; these models normalise them
into tagged shapes so the pipeline never checks optional fields ad hoc.
"""

__all__ = ["events", "metadata"]
