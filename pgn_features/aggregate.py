"""
Assemble GameRecords into one index-aligned columnar Dataset.

Per-game sequences are appended to flat typed buffers with int64 offsets, so a
game costs O(moves) to add and no per-game objects are kept around. The arrow
table is built once, at the end.
"""

from __future__ import annotations

import array
import itertools
import logging
import typing

import pandas as pd
import pyarrow

from pgn_features.config import DEFAULT_MAX_GAMES, BoardEncoding
from pgn_features.encoding import make_encoder
from pgn_features.errors import DatasetError
from pgn_features.visitor import GameRecord

logger = logging.getLogger(__name__)

# column -> (GameRecord field, buffer typecode, arrow value type)
RAGGED_COLUMNS = {
    "win_probabilities": ("win_probabilities", "f", pyarrow.float32()),
    "move_quality_code": (None, "B", pyarrow.uint8()),
    "move_quality_index": (None, "i", pyarrow.int32()),
}
RAW_EVALUATION_COLUMNS = {
    "evaluations": ("evaluations", "f", pyarrow.float32()),
    "evaluation_index": ("evaluation_indices", "i", pyarrow.int32()),
    "mate_evaluations": ("mate_evaluations", "i", pyarrow.int32()),
    "mate_evaluation_index": ("mate_indices", "i", pyarrow.int32()),
}


def _arrow_values(buf: array.array, value_type: pyarrow.DataType) -> pyarrow.Array:
    return pyarrow.Array.from_buffers(value_type, len(buf), [None, pyarrow.py_buffer(buf)])


class RaggedColumn:
    """Flat values plus offsets, i.e. the layout of an arrow large_list."""

    def __init__(self, typecode: str, value_type: pyarrow.DataType, width: int = 1):
        self.values = array.array(typecode)
        self.offsets = array.array("q", [0])
        self.value_type = value_type
        self.width = width  # values per list element, >1 for fixed-size rows

    def stage(self, items: typing.Iterable) -> array.array:
        """Convert one row to the column type without touching the column."""
        row = array.array(self.values.typecode, items)
        if len(row) % self.width:
            raise DatasetError(f"row of {len(row)} values is not a multiple of width {self.width}")
        return row

    def commit(self, row: array.array) -> None:
        self.values.extend(row)
        self.offsets.append(self.offsets[-1] + len(row) // self.width)

    def append(self, items: typing.Iterable) -> None:
        self.commit(self.stage(items))

    def __len__(self) -> int:
        return len(self.offsets) - 1

    def to_arrow(self) -> pyarrow.LargeListArray:
        values = _arrow_values(self.values, self.value_type)
        if self.width > 1:
            values = pyarrow.FixedSizeListArray.from_arrays(values, self.width)
        return pyarrow.LargeListArray.from_arrays(_arrow_values(self.offsets, pyarrow.int64()), values)


class Dataset:
    """Write-once columnar view over the accepted games, one row per game."""

    def __init__(self, table: pyarrow.Table):
        self._table = table

    @property
    def num_games(self) -> int:
        return self._table.num_rows

    @property
    def column_names(self) -> list[str]:
        return self._table.column_names

    def column(self, name: str) -> list:
        return self._table.column(name).to_pylist()

    def to_arrow(self) -> pyarrow.Table:
        return self._table

    def to_pandas(self) -> pd.DataFrame:
        return self._table.to_pandas()


class CorpusAggregator:
    """
    Count every game seen and keep the annotated ones.

    ``offer`` takes whatever the reader produced for one game, a GameRecord or
    None for a skipped / failed game. Once ``max_games`` games have been seen
    the aggregator is full and the driver should stop reading.
    """

    def __init__(
        self,
        max_games: int | None = DEFAULT_MAX_GAMES,
        board_encoding: BoardEncoding = BoardEncoding.FLAT,
        emit_raw_evaluations: bool = False,
    ):
        self.max_games = max_games
        self.games_seen = 0
        self.games_accepted = 0
        self._built = False

        encoder = make_encoder(board_encoding)
        self._white_rating = array.array("i")
        self._black_rating = array.array("i")
        self._boards = RaggedColumn(encoder.typecode, encoder.arrow_type, encoder.width)

        specs = dict(RAGGED_COLUMNS)
        if emit_raw_evaluations:
            specs.update(RAW_EVALUATION_COLUMNS)
        self._fields = {name: field for name, (field, _, _) in specs.items()}
        self._ragged = {
            name: RaggedColumn(typecode, value_type)
            for name, (_, typecode, value_type) in specs.items()
        }

    @property
    def is_full(self) -> bool:
        return self.max_games is not None and self.games_seen >= self.max_games

    def offer(self, record: GameRecord | None) -> bool:
        """Count one game and store it if it has annotations. Returns whether it was kept."""
        if self._built:
            raise DatasetError("dataset already built")
        if self.is_full:
            raise DatasetError(f"game cap of {self.max_games} already reached")
        self.games_seen += 1
        if record is None or not record.has_annotations:
            return False

        # stage every column before committing any, so a bad value drops the whole game
        try:
            boards = self._boards.stage(itertools.chain.from_iterable(record.board_sequence))
            ratings = array.array("i", (record.white_rating, record.black_rating))
            rows = {
                "move_quality_code": self._ragged["move_quality_code"].stage(c for c, _ in record.move_quality_marks),
                "move_quality_index": self._ragged["move_quality_index"].stage(i for _, i in record.move_quality_marks),
            }
            for name, field in self._fields.items():
                if field is not None:
                    rows[name] = self._ragged[name].stage(getattr(record, field))
        except OverflowError as exc:
            logger.warning("Dropping game %d: value out of column range: %s", self.games_seen, exc)
            return False

        self._boards.commit(boards)
        self._white_rating.append(ratings[0])
        self._black_rating.append(ratings[1])
        for name, row in rows.items():
            self._ragged[name].commit(row)
        self.games_accepted += 1
        return True

    def consume(self, records: typing.Iterable[GameRecord | None]) -> int:
        """Offer records until the stream ends or the cap is hit. Returns games seen."""
        if self.is_full:
            return self.games_seen
        for record in records:
            self.offer(record)
            if self.is_full:
                logger.info("Reached max_games limit (%d). Stopping early.", self.max_games)
                break
        return self.games_seen

    def build(self) -> Dataset:
        if self._built:
            raise DatasetError("dataset already built")
        self._built = True

        columns = {
            "white_rating": _arrow_values(self._white_rating, pyarrow.int32()),
            "black_rating": _arrow_values(self._black_rating, pyarrow.int32()),
            "win_probabilities": self._ragged["win_probabilities"].to_arrow(),
            "board_sequence": self._boards.to_arrow(),
        }
        for name, column in self._ragged.items():
            if name not in columns:
                columns[name] = column.to_arrow()

        lengths = {name: len(column) for name, column in columns.items()}
        if len(set(lengths.values())) != 1:
            raise DatasetError(f"columns are not index-aligned: {lengths}")
        logger.debug("Built dataset of %d games (%d seen)", self.games_accepted, self.games_seen)
        return Dataset(pyarrow.table(columns))
