"""Exceptions raised while turning PGN into features.

The hierarchy follows the unit a failure takes down: a comment, a game, or the
whole corpus run.
"""


class PgnFeaturesError(Exception):
    pass


class AnnotationParseError(PgnFeaturesError):
    """A comment matched an annotation tag but its number did not parse."""


class GameError(PgnFeaturesError):
    """The current game cannot be turned into a record and is dropped."""


class RatingParseError(GameError):
    def __init__(self, header: str, value: str):
        super().__init__(f"unparsable rating in {header} header: {value!r}")
        self.header = header
        self.value = value


class DatasetError(PgnFeaturesError):
    """The corpus-level dataset cannot be assembled."""
