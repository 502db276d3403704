"""Persist a Dataset to parquet and summarise written files with duckdb."""

from __future__ import annotations

import logging
from pathlib import Path

import duckdb
import pandas as pd
import pyarrow.parquet as pq

from pgn_features.aggregate import Dataset
from pgn_features.config import COMPRESSION

logger = logging.getLogger(__name__)


def write_dataset(dataset: Dataset, out_path: str | Path, compression: str = COMPRESSION) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        pq.write_table(dataset.to_arrow(), out_path, compression=compression)
    except Exception:
        logger.exception("Failed writing parquet %s", out_path)
        raise
    logger.info("Wrote %d games to %s", dataset.num_games, out_path)
    return out_path


def summarize_parquet(parquet_path: str | Path) -> pd.DataFrame:
    """One-row frame: games, plies, ratings and annotation counts of a written dataset."""
    con = duckdb.connect()
    try:
        sql = """
        SELECT
            COUNT(*) AS games,
            SUM(len(board_sequence)) AS boards,
            AVG(len(board_sequence)) AS mean_plies,
            AVG(NULLIF(white_rating, 0)) AS mean_white_rating,
            AVG(NULLIF(black_rating, 0)) AS mean_black_rating,
            SUM(len(win_probabilities)) AS win_probabilities,
            SUM(len(move_quality_code)) AS move_quality_marks
        FROM read_parquet(?)
        """
        return con.execute(sql, [Path(parquet_path).as_posix()]).fetchdf()
    finally:
        con.close()
