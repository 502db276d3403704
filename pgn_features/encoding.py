"""Fixed-width numeric encodings of a chess.Board."""

from __future__ import annotations

import chess
import pyarrow

from pgn_features.config import BoardEncoding

EncodedBoard = tuple[int, ...]

FLAT_WIDTH = 72
BITBOARD_WIDTH = 8

CASTLING_ORDER = (
    (chess.WHITE, chess.Board.has_kingside_castling_rights),
    (chess.WHITE, chess.Board.has_queenside_castling_rights),
    (chess.BLACK, chess.Board.has_kingside_castling_rights),
    (chess.BLACK, chess.Board.has_queenside_castling_rights),
)


def en_passant_square(board: chess.Board) -> int:
    """Square index of a legal en passant capture, 0 if there is none."""
    if board.ep_square is None or not board.has_legal_en_passant():
        return 0
    return board.ep_square


class FlatCellEncoder:
    """
    One value per square followed by the position flags:

    ======  ==========================================================
    0-63    piece per square a1..h8: 0 empty, 1..6 pawn..king, sign is
            the colour (+ white, - black)
    64      side to move, +1 white / -1 black
    65-68   castling rights WK, WQ, BK, BQ as 0/1
    69      en passant target square, 0 if none
    70      half-move clock
    71      full-move number, always 0 (recoverable from ply order)
    ======  ==========================================================

    Values are stored as int16 since the half-move clock can pass 127.
    """

    width = FLAT_WIDTH
    arrow_type = pyarrow.int16()
    typecode = "h"

    def encode(self, board: chess.Board) -> EncodedBoard:
        cells = [0] * 64
        for square, piece in board.piece_map().items():
            cells[square] = piece.piece_type if piece.color == chess.WHITE else -piece.piece_type

        cells.append(1 if board.turn == chess.WHITE else -1)
        for color, has_rights in CASTLING_ORDER:
            cells.append(1 if has_rights(board, color) else 0)
        cells.append(en_passant_square(board))
        cells.append(board.halfmove_clock)
        cells.append(0)
        return tuple(cells)


class BitboardEncoder:
    """Occupancy masks: pawn, bishop, knight, rook, queen, king, white, black."""

    width = BITBOARD_WIDTH
    arrow_type = pyarrow.uint64()
    typecode = "Q"

    def encode(self, board: chess.Board) -> EncodedBoard:
        return (
            board.pawns,
            board.bishops,
            board.knights,
            board.rooks,
            board.queens,
            board.kings,
            board.occupied_co[chess.WHITE],
            board.occupied_co[chess.BLACK],
        )


BoardEncoder = FlatCellEncoder | BitboardEncoder


def make_encoder(encoding: BoardEncoding | str = BoardEncoding.FLAT) -> BoardEncoder:
    encoding = BoardEncoding(encoding)
    if encoding is BoardEncoding.BITBOARDS:
        return BitboardEncoder()
    return FlatCellEncoder()
