__all__ = ["StarDataEvolution", "StarDataLifestageEvolution", "StarFate"]

from .evolution import StarDataEvolution, StarDataLifestageEvolution
from .fate import StarFate
