#!/usr/bin/env python3
# extract.py
"""
Stream a .pgn or .pgn.zst file, replay every game and write one parquet file with columns:

COLUMNS = [
    "white_rating", "black_rating", "win_probabilities", "board_sequence", "move_quality_code", "move_quality_index"
]

plus "evaluations", "evaluation_index", "mate_evaluations", "mate_evaluation_index" with --raw-evals.
Only games with at least one [%eval] annotation are kept; blitz and bullet games are skipped.

Usage example:
pgn-features in/lichess_db_standard_rated_2023-03.pgn.zst --out out/board_info.parquet --max-games 100000
"""

from __future__ import annotations

import argparse
import logging
import time
import typing
from pathlib import Path

from pgn_features.aggregate import CorpusAggregator, Dataset
from pgn_features.config import DEFAULT_MAX_GAMES, LOG_FORMAT, PROGRESS_EVERY, BoardEncoding, VisitorConfig
from pgn_features.reader import NotationReader, open_pgn
from pgn_features.visitor import GameRecord, GameVisitor
from pgn_features.writer import summarize_parquet, write_dataset

logger = logging.getLogger(__name__)


def _log_progress(records: typing.Iterable[GameRecord | None], aggregator: CorpusAggregator):
    for record in records:
        yield record
        # resumed after the aggregator counted this record
        seen = aggregator.games_seen
        if seen % PROGRESS_EVERY == 0:
            logger.info("Processed %d games... annotated %d", seen, aggregator.games_accepted)


def stream_to_dataset(
    pgn_path: str | Path,
    max_games: int | None = DEFAULT_MAX_GAMES,
    config: VisitorConfig | None = None,
) -> Dataset:
    """Read games from ``pgn_path`` until it ends or ``max_games`` games were seen."""
    config = config or VisitorConfig()
    visitor = GameVisitor(config)
    aggregator = CorpusAggregator(
        max_games=max_games,
        board_encoding=config.board_encoding,
        emit_raw_evaluations=config.emit_raw_evaluations,
    )

    logger.info("Starting stream: %s (max_games=%s)", pgn_path, max_games)
    start = time.perf_counter()
    with open_pgn(pgn_path) as text:
        reader = NotationReader(text)
        aggregator.consume(_log_progress(reader.games(visitor), aggregator))
    elapsed = time.perf_counter() - start

    logger.info(
        "Processed %d games in %.1f s, %.0f games/s, %d annotated",
        aggregator.games_seen,
        elapsed,
        aggregator.games_seen / elapsed if elapsed else 0.0,
        aggregator.games_accepted,
    )
    return aggregator.build()


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Stream .pgn(.zst) -> per-game board and eval features parquet")
    p.add_argument("pgn_path", help="path to the .pgn or .pgn.zst file")
    p.add_argument("--out", default="out/board_info.parquet", help="output parquet file")
    p.add_argument("--max-games", type=int, default=DEFAULT_MAX_GAMES,
                   help=f"stop after N games seen, annotated or not (default {DEFAULT_MAX_GAMES})")
    p.add_argument("--raw-evals", action="store_true", help="also store raw evaluations and mate counts")
    p.add_argument("--no-win-probability", action="store_true", help="do not store sigmoid win probabilities")
    p.add_argument("--encoding", choices=[e.value for e in BoardEncoding], default=BoardEncoding.FLAT.value,
                   help="board encoding: 72 flat cells or 8 occupancy bitboards")
    p.add_argument("--summary", action="store_true", help="print a summary of the written parquet")
    p.add_argument("--verbose", action="store_true", help="enable verbose logging")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    if args.no_win_probability and not args.raw_evals:
        p.error("--no-win-probability needs --raw-evals, otherwise no annotation is stored")

    config = VisitorConfig(
        emit_raw_evaluations=args.raw_evals,
        emit_win_probability=not args.no_win_probability,
        board_encoding=BoardEncoding(args.encoding),
    )
    dataset = stream_to_dataset(args.pgn_path, max_games=args.max_games, config=config)
    out_path = write_dataset(dataset, args.out)

    if args.summary:
        print(summarize_parquet(out_path).to_string(index=False))


if __name__ == "__main__":
    main()
