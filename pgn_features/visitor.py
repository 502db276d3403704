"""
Single-pass PGN visitor that replays the main line of a game and collects its
features.

The visitor plugs into ``chess.pgn.read_game`` and keeps its own
``chess.Board``. Move tokens are resolved against that board in ``parse_san``
instead of the reader's board, so an unresolvable token only drops itself and
the rest of the main line is still replayed.
"""

from __future__ import annotations

import dataclasses
import enum
import logging

import chess
import chess.pgn

from pgn_features.annotations import FORCED_MATE_SIGN, AnnotationExtractor
from pgn_features.config import VisitorConfig
from pgn_features.encoding import EncodedBoard, make_encoder
from pgn_features.errors import AnnotationParseError, GameError, RatingParseError

logger = logging.getLogger(__name__)

RATING_HEADERS = {"whiteelo": "white_rating", "blackelo": "black_rating"}
INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
MAX_NAG = 255


class VisitorState(enum.Enum):
    IDLE = "idle"
    IN_HEADERS = "in_headers"
    IN_MOVES = "in_moves"
    DONE = "done"


@dataclasses.dataclass(frozen=True)
class GameRecord:
    white_rating: int = 0
    black_rating: int = 0
    move_quality_marks: tuple[tuple[int, int], ...] = ()  # (nag, move index)
    win_probabilities: tuple[float, ...] = ()
    board_sequence: tuple[EncodedBoard, ...] = ()
    move_count: int = 0  # move tokens seen, including dropped ones
    evaluations: tuple[float, ...] = ()
    evaluation_indices: tuple[int, ...] = ()
    mate_evaluations: tuple[int, ...] = ()
    mate_indices: tuple[int, ...] = ()

    @property
    def has_annotations(self) -> bool:
        return bool(self.win_probabilities or self.evaluations or self.mate_evaluations)


class GameVisitor(chess.pgn.BaseVisitor[GameRecord | None]):
    """
    Collect one GameRecord per game. Reuse a single instance across games:

        visitor = GameVisitor()
        record = chess.pgn.read_game(handle, Visitor=lambda: visitor)

    ``result()`` is None for games skipped at the headers, and raises the
    stored GameError for games whose headers could not be parsed.
    """

    def __init__(self, config: VisitorConfig | None = None, extractor: AnnotationExtractor | None = None):
        self.config = config or VisitorConfig()
        self.extractor = extractor or AnnotationExtractor()
        self.encoder = make_encoder(self.config.board_encoding)
        self.reset()

    def reset(self) -> None:
        self.state = VisitorState.IDLE
        self.position = chess.Board()
        self.skip = False
        self.error: GameError | None = None
        self.index = 0
        self._pending: chess.Move | None = None
        self.white_rating = 0
        self.black_rating = 0
        self.move_quality_marks: list[tuple[int, int]] = []
        self.win_probabilities: list[float] = []
        self.board_sequence: list[EncodedBoard] = []
        self.evaluations: list[float] = []
        self.evaluation_indices: list[int] = []
        self.mate_evaluations: list[int] = []
        self.mate_indices: list[int] = []

    def begin_game(self) -> None:
        self.reset()
        self.state = VisitorState.IN_HEADERS

    def visit_header(self, tagname: str, tagvalue: str) -> None:
        key = tagname.lower()
        value = tagvalue.lower()
        if key == "event":
            if any(marker in value for marker in self.config.skip_event_markers):
                self.skip = True
        elif key in RATING_HEADERS:
            try:
                rating = int(value)
                if not INT32_MIN <= rating <= INT32_MAX:
                    raise ValueError(value)
            except ValueError:
                # keep the first failure, the game is dropped either way
                if self.error is None:
                    self.error = RatingParseError(tagname, tagvalue)
                return
            setattr(self, RATING_HEADERS[key], rating)

    def end_headers(self) -> chess.pgn.SkipType | None:
        if self.skip or self.error is not None:
            return chess.pgn.SKIP
        self.state = VisitorState.IN_MOVES
        return None

    def parse_san(self, board: chess.Board, san: str) -> chess.Move:
        """
        Resolve ``san`` against the visitor's position.

        The reader is always handed a null move: its board only tracks
        variation nesting and is never used for features.
        """
        self.index += 1
        try:
            move = self.position.parse_san(san)
        except ValueError as exc:
            logger.debug("Dropping move %d (%s): %s", self.index, san, exc)
            move = None
        if move is not None and not move:
            logger.debug("Dropping null move %d (%s)", self.index, san)
            move = None
        self._pending = move
        return chess.Move.null()

    def visit_move(self, board: chess.Board, move: chess.Move) -> None:
        if self._pending is None:
            return
        self.position.push(self._pending)
        self._pending = None
        self.board_sequence.append(self.encoder.encode(self.position))

    def visit_nag(self, nag: int) -> None:
        if not 0 <= nag <= MAX_NAG:
            logger.warning("Ignoring NAG $%d after move %d: out of range", nag, self.index)
            return
        # NAGs follow the move they annotate
        self.move_quality_marks.append((nag, self.index - 1))

    def visit_comment(self, comment: str) -> None:
        try:
            annotations = self.extractor.extract(comment)
        except AnnotationParseError as exc:
            logger.warning("Ignoring comment after move %d: %s", self.index, exc)
            return

        for annotation in annotations:
            if self.config.emit_win_probability:
                self.win_probabilities.append(annotation.win_probability)
            if not self.config.emit_raw_evaluations:
                continue
            if annotation.produced_by == FORCED_MATE_SIGN:
                self.mate_evaluations.append(int(annotation.raw))
                self.mate_indices.append(self.index)
            else:
                self.evaluations.append(float(annotation.raw))
                self.evaluation_indices.append(self.index)

    def begin_variation(self) -> chess.pgn.SkipType:
        return chess.pgn.SKIP  # main line only

    def handle_error(self, error: Exception) -> None:
        logger.warning("PGN error after move %d: %s", self.index, error)

    def end_game(self) -> None:
        self.state = VisitorState.DONE

    def result(self) -> GameRecord | None:
        if self.error is not None:
            raise self.error
        if self.skip:
            return None
        return GameRecord(
            white_rating=self.white_rating,
            black_rating=self.black_rating,
            move_quality_marks=tuple(self.move_quality_marks),
            win_probabilities=tuple(self.win_probabilities),
            board_sequence=tuple(self.board_sequence),
            move_count=self.index,
            evaluations=tuple(self.evaluations),
            evaluation_indices=tuple(self.evaluation_indices),
            mate_evaluations=tuple(self.mate_evaluations),
            mate_indices=tuple(self.mate_indices),
        )
