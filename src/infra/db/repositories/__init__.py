from .lots_repo import LotsRepo
from .placements_repo import PlacementsRepo
from .racks_repo import RacksRepo
from .spaces_repo import SpacesRepo

__all__ = ["LotsRepo", "PlacementsRepo", "RacksRepo", "SpacesRepo"]
