"""Open PGN archives and drive a GameVisitor through them one game at a time."""

from __future__ import annotations

import contextlib
import io
import logging
import typing
from pathlib import Path

import chess.pgn
import zstandard as zstd

from pgn_features.errors import GameError
from pgn_features.visitor import GameRecord, GameVisitor, VisitorState

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def open_pgn(path: str | Path) -> typing.Iterator[typing.TextIO]:
    """Yield a text stream over a .pgn or zstd-compressed .pgn.zst file."""
    path = Path(path)
    if path.suffix != ".zst":
        with open(path, encoding="utf-8", errors="replace", newline="\n") as text:
            yield text
        return

    ctx = zstd.ZstdDecompressor()
    with open(path, "rb") as fh, ctx.stream_reader(fh) as reader, \
         io.TextIOWrapper(reader, encoding="utf-8", errors="replace", newline="\n") as text:
        yield text


class _PushbackLines:
    """``readline`` over a text stream with one line of lookahead."""

    def __init__(self, handle: typing.TextIO):
        self.handle = handle
        self.pending: str | None = None

    def peek(self) -> str:
        if self.pending is None:
            self.pending = self.handle.readline()
        return self.pending

    def readline(self) -> str:
        if self.pending is None:
            return self.handle.readline()
        line, self.pending = self.pending, None
        return line


class NotationReader:
    """
    Pull games from a PGN text stream.

    ``read_game`` returns a GameRecord, or None for a game the visitor skipped.
    ``has_more`` looks ahead past blank and comment lines, so it is false as
    soon as no further game is left in the stream.
    """

    def __init__(self, handle: typing.TextIO):
        self.handle = handle
        self._lines = _PushbackLines(handle)
        self._exhausted = False

    def has_more(self) -> bool:
        while not self._exhausted:
            line = self._lines.peek()
            if not line:
                self._exhausted = True
                break
            line = line.lstrip("\ufeff")
            if not line or line.isspace() or line.startswith(("%", ";")):
                self._lines.readline()
            else:
                return True
        return False

    def read_game(self, visitor: GameVisitor) -> GameRecord | None:
        visitor.reset()
        record = chess.pgn.read_game(self._lines, Visitor=lambda: visitor)
        if visitor.state is VisitorState.IDLE:
            self._exhausted = True
        return record

    def games(self, visitor: GameVisitor) -> typing.Iterator[GameRecord | None]:
        """
        Yield one item per game until the stream ends.

        Games that fail with a GameError are logged and yielded as None so the
        caller still counts them.
        """
        count = 0
        while self.has_more():
            try:
                record = self.read_game(visitor)
            except GameError as exc:
                logger.warning("Dropping game %d: %s", count, exc)
                record = None
            if self._exhausted:
                break
            count += 1
            yield record
