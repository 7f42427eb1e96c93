"""
.. include:: ../README.md
"""

__all__ = [
    "delta",
    "exceptions",
    "iter",
    "model",
    "store",
    "timeline",
    "timespan",
    "util",
    "view",
]
