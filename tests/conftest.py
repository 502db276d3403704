import io

import pytest

from pgn_features.config import VisitorConfig
from pgn_features.reader import NotationReader
from pgn_features.visitor import GameVisitor

# Four plies, one evaluation per move, classical time control.
GAME_A = """[Event "Rated Classical game"]
[Site "https://lichess.org/aaaaaaaa"]
[White "alice"]
[Black "bob"]
[Result "*"]
[WhiteElo "1500"]
[BlackElo "1400"]

1. e4 { [%eval 0.17] [%clk 0:10:00] } 1... e5 { [%eval 0.2] } 2. Nf3 { [%eval -0.1] } 2... Nc6 { [%eval 0.05] } *
"""

GAME_B = GAME_A.replace("Rated Classical game", "Rated Bullet game")

# Bb5 is not a legal black move here; Nc6 is.
GAME_C = """[Event "Rated Rapid game"]
[WhiteElo "1600"]
[BlackElo "1650"]

1. e4 { [%eval 0.2] } e5 2. Nf3 Bb5 3... Nc6 *
"""

GAME_D = """[Event "Rated Classical game"]
[WhiteElo "2000"]
[BlackElo "2100"]

1. e4 { [%eval 0.5] [%eval #3] } *
"""

GAME_NO_EVALS = """[Event "Rated Classical game"]
[WhiteElo "1800"]
[BlackElo "1810"]

1. d4 d5 2. c4 e6 *
"""

GAME_BAD_RATING = """[Event "Rated Classical game"]
[WhiteElo "?"]
[BlackElo "1500"]

1. e4 { [%eval 0.3] } e5 *
"""


def join_games(*games: str) -> str:
    return "\n".join(games)


@pytest.fixture
def read_records():
    """Read every game of a PGN string with one reused visitor."""

    def _read(pgn: str, config: VisitorConfig | None = None) -> list:
        visitor = GameVisitor(config)
        return list(NotationReader(io.StringIO(pgn)).games(visitor))

    return _read
