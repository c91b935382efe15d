from . import badges
from . import loyalty
from . import wheels

__all__ = [
    "badges",
    "loyalty",
    "wheels",
]
