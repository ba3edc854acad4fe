from enum import Enum


class _LabeledEnum(Enum):
    """Enum with lenient parsing from API/DB strings and a display label."""

    @classmethod
    def _legacy_map(cls) -> dict:
        return {}

    @classmethod
    def from_any(cls, value):
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            legacy = cls._legacy_map()
            if normalized in legacy:
                return legacy[normalized]
            for member in cls:
                if member.value == normalized or member.name.lower() == normalized:
                    return member
        raise ValueError(f"Cannot parse {value!r} into {cls.__name__}")

    @property
    def label(self):
        return _LABELS.get(self, self.name.title())


class SpaceKind(_LabeledEnum):
    ROOM = "room"
    FRIDGE = "fridge"

    @classmethod
    def _legacy_map(cls) -> dict:
        return {"cabinet": cls.FRIDGE, "wine fridge": cls.FRIDGE, "cellar": cls.ROOM}


class WallPosition(_LabeledEnum):
    LEFT = "left"
    RIGHT = "right"
    BACK = "back"
    FRONT = "front"
    FLOOR = "floor"


class RackKind(_LabeledEnum):
    GRID = "grid"
    BIN = "bin"

    @classmethod
    def _legacy_map(cls) -> dict:
        return {"slots": cls.GRID, "bins": cls.BIN}


_LABELS = {
    SpaceKind.ROOM: "Room",
    SpaceKind.FRIDGE: "Fridge / Cabinet",
    WallPosition.LEFT: "Left Wall",
    WallPosition.RIGHT: "Right Wall",
    WallPosition.BACK: "Back Wall",
    WallPosition.FRONT: "Front Wall",
    WallPosition.FLOOR: "Floor",
    RackKind.GRID: "Grid",
    RackKind.BIN: "Bins",
}
