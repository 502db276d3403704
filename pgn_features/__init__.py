"""Stream PGN archives into columnar per-game board and annotation features."""

from pgn_features.aggregate import CorpusAggregator, Dataset
from pgn_features.annotations import Annotation, AnnotationExtractor, sigmoid
from pgn_features.config import BoardEncoding, VisitorConfig
from pgn_features.encoding import BitboardEncoder, FlatCellEncoder, make_encoder
from pgn_features.reader import NotationReader, open_pgn
from pgn_features.visitor import GameRecord, GameVisitor, VisitorState

__all__ = [
    "Annotation",
    "AnnotationExtractor",
    "BitboardEncoder",
    "BoardEncoding",
    "CorpusAggregator",
    "Dataset",
    "FlatCellEncoder",
    "GameRecord",
    "GameVisitor",
    "NotationReader",
    "VisitorConfig",
    "VisitorState",
    "make_encoder",
    "open_pgn",
    "sigmoid",
]
