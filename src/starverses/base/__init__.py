__all__ = ["Star", "Universe"]

from .star import Star
from .universe import Universe
