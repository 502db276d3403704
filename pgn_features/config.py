"""Defaults and the visitor configuration surface."""

from __future__ import annotations

import dataclasses
import enum

DEFAULT_MAX_GAMES = 10_000_000
PROGRESS_EVERY = 10_000  # log every N games seen
COMPRESSION = "snappy"
LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s"

# Event header substrings that mark a fast time control (matched lowercase).
FAST_TIME_CONTROL_MARKERS = ("blitz", "bullet")


class BoardEncoding(str, enum.Enum):
    FLAT = "flat"
    BITBOARDS = "bitboards"


@dataclasses.dataclass(frozen=True)
class VisitorConfig:
    """What a GameVisitor records for each game."""

    emit_raw_evaluations: bool = False  # keep pawn scores and mate counts with move indices
    emit_win_probability: bool = True
    board_encoding: BoardEncoding = BoardEncoding.FLAT
    skip_event_markers: tuple[str, ...] = FAST_TIME_CONTROL_MARKERS
