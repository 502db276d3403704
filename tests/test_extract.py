"""End-to-end tests: PGN file in, Dataset and parquet out."""

import pyarrow.parquet as pq
import pytest
import zstandard as zstd

from conftest import GAME_A, GAME_B, GAME_BAD_RATING, GAME_C, GAME_D, GAME_NO_EVALS, join_games
from pgn_features.annotations import sigmoid
from pgn_features.config import BoardEncoding, VisitorConfig
from pgn_features.extract import main, stream_to_dataset
from pgn_features.writer import summarize_parquet, write_dataset


@pytest.fixture
def write_pgn(tmp_path):
    def _write(*games: str, name: str = "games.pgn"):
        path = tmp_path / name
        data = join_games(*games).encode("utf-8")
        if name.endswith(".zst"):
            data = zstd.ZstdCompressor().compress(data)
        path.write_bytes(data)
        return path

    return _write


class TestScenarios:
    def test_scenario_a(self, write_pgn):
        dataset = stream_to_dataset(write_pgn(GAME_A))
        assert dataset.num_games == 1
        assert len(dataset.column("board_sequence")[0]) == 4
        assert dataset.column("white_rating") == [1500]
        assert dataset.column("black_rating") == [1400]
        assert len(dataset.column("win_probabilities")[0]) == 4

    def test_scenario_b_fast_time_control(self, write_pgn):
        assert stream_to_dataset(write_pgn(GAME_B)).num_games == 0

    def test_scenario_c_illegal_move(self, write_pgn):
        dataset = stream_to_dataset(write_pgn(GAME_C))
        assert len(dataset.column("board_sequence")[0]) == 4

    def test_scenario_d_two_probabilities(self, write_pgn):
        (probabilities,) = stream_to_dataset(write_pgn(GAME_D)).column("win_probabilities")
        assert probabilities == [pytest.approx(sigmoid(0.5)), 1.0]

    def test_unannotated_and_failed_games_excluded(self, write_pgn):
        dataset = stream_to_dataset(write_pgn(GAME_NO_EVALS, GAME_BAD_RATING, GAME_A, GAME_B))
        assert dataset.column("white_rating") == [1500]

    def test_overflowing_rating_does_not_stop_the_run(self, write_pgn):
        huge = GAME_C.replace("\"1600\"", "\"3000000000\"")
        dataset = stream_to_dataset(write_pgn(huge, GAME_A, GAME_D))
        assert dataset.column("white_rating") == [1500, 2000]

    def test_out_of_range_nag_keeps_game(self, write_pgn):
        dataset = stream_to_dataset(write_pgn(GAME_A.replace("1... e5", "1... e5 $300")))
        assert dataset.num_games == 1
        assert dataset.column("move_quality_code") == [[]]


class TestStreamToDataset:
    def test_max_games_counts_skipped(self, write_pgn):
        path = write_pgn(GAME_B, GAME_NO_EVALS, GAME_A, GAME_C)
        assert stream_to_dataset(path, max_games=2).num_games == 0
        assert stream_to_dataset(path, max_games=3).num_games == 1
        assert stream_to_dataset(path, max_games=None).num_games == 2

    def test_zstd_input(self, write_pgn):
        dataset = stream_to_dataset(write_pgn(GAME_A, GAME_C, name="games.pgn.zst"))
        assert dataset.column("white_rating") == [1500, 1600]

    def test_raw_evaluations_and_bitboards(self, write_pgn):
        config = VisitorConfig(emit_raw_evaluations=True, board_encoding=BoardEncoding.BITBOARDS)
        dataset = stream_to_dataset(write_pgn(GAME_A), config=config)
        assert dataset.column("evaluation_index") == [[1, 2, 3, 4]]
        assert all(len(masks) == 8 for masks in dataset.column("board_sequence")[0])

    def test_missing_input_is_fatal(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            stream_to_dataset(tmp_path / "missing.pgn.zst")


class TestWriter:
    def test_parquet_round_trip(self, write_pgn, tmp_path):
        dataset = stream_to_dataset(write_pgn(GAME_A, GAME_D))
        out = write_dataset(dataset, tmp_path / "out" / "board_info.parquet")

        table = pq.read_table(out)
        assert table.num_rows == 2
        assert table.column("white_rating").to_pylist() == [1500, 2000]
        boards = table.column("board_sequence").to_pylist()
        assert [len(b) for b in boards] == [4, 1]
        assert all(len(cells) == 72 for cells in boards[0])

    def test_summary(self, write_pgn, tmp_path):
        out = write_dataset(stream_to_dataset(write_pgn(GAME_A, GAME_D)), tmp_path / "board_info.parquet")
        summary = summarize_parquet(out)
        row = summary.iloc[0]
        assert row["games"] == 2
        assert row["boards"] == 5
        assert row["win_probabilities"] == 6
        assert row["mean_white_rating"] == pytest.approx(1750)

    def test_summary_path_with_quote(self, write_pgn, tmp_path):
        out = write_dataset(stream_to_dataset(write_pgn(GAME_A)), tmp_path / "player's games" / "board_info.parquet")
        assert summarize_parquet(out).iloc[0]["games"] == 1


class TestMain:
    def test_cli(self, write_pgn, tmp_path, capsys):
        out = tmp_path / "cli.parquet"
        main([str(write_pgn(GAME_A, GAME_B, GAME_C)), "--out", str(out), "--summary"])
        assert pq.read_table(out).num_rows == 2
        assert "games" in capsys.readouterr().out

    def test_cli_options(self, write_pgn, tmp_path):
        out = tmp_path / "raw.parquet"
        main([str(write_pgn(GAME_A)), "--out", str(out), "--raw-evals", "--no-win-probability",
              "--encoding", "bitboards", "--max-games", "5"])
        table = pq.read_table(out)
        assert table.column("win_probabilities").to_pylist() == [[]]
        assert table.column("evaluations").to_pylist()[0] == pytest.approx([0.17, 0.2, -0.1, 0.05])

    def test_no_win_probability_needs_raw_evals(self, write_pgn, tmp_path):
        with pytest.raises(SystemExit):
            main([str(write_pgn(GAME_A)), "--out", str(tmp_path / "x.parquet"), "--no-win-probability"])
