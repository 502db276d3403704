"""
Parse engine evaluations out of PGN move comments.

Lichess analysis comments look like ``{ [%eval 0.17] [%clk 0:00:30] }`` or
``{ [%eval #-3] }``. Each recognizer turns its first match in a comment into an
Annotation carrying a win probability; the extractor runs the recognizers in
order and keeps every result, so one comment can yield several annotations.
"""

from __future__ import annotations

import abc
import dataclasses
import math
import re

from pgn_features.errors import AnnotationParseError

EVALUATION_SIGMOID = "evaluation-sigmoid"
FORCED_MATE_SIGN = "forced-mate-sign"


def sigmoid(value: float) -> float:
    """Squash a pawn evaluation into (0, 1) without overflowing for large |value|."""
    if value >= 0:
        return 1.0 / (1.0 + math.exp(-value))
    z = math.exp(value)
    return z / (1.0 + z)


@dataclasses.dataclass(frozen=True)
class Annotation:
    win_probability: float
    produced_by: str
    raw: float | int


class AnnotationRecognizer(abc.ABC):
    """
    One annotation syntax: a pattern with a single capture group plus the
    conversion of the captured text into an Annotation.

    Subclasses set ``pattern`` and ``produced_by`` and implement ``convert``.
    """

    pattern: re.Pattern[str]
    produced_by: str

    def recognize(self, comment: str) -> Annotation | None:
        match = self.pattern.search(comment)
        if match is None:
            return None
        text = match.group(1)
        try:
            return self.convert(text)
        except ValueError as exc:
            raise AnnotationParseError(
                f"malformed {self.produced_by} value {text!r}"
            ) from exc

    @abc.abstractmethod
    def convert(self, text: str) -> Annotation:
        ...


class EvaluationRecognizer(AnnotationRecognizer):
    """``[%eval 1.23]``: a score in pawns from white's point of view."""

    pattern = re.compile(r"\[%eval\s+([^#\s\]][^\s\]]*)\]")
    produced_by = EVALUATION_SIGMOID

    def convert(self, text: str) -> Annotation:
        score = float(text)
        if not math.isfinite(score):
            raise ValueError(text)
        return Annotation(sigmoid(score), self.produced_by, score)


class MateRecognizer(AnnotationRecognizer):
    """``[%eval #-3]``: forced mate in N, negative when white is being mated."""

    pattern = re.compile(r"\[%eval\s+#([^\s\]]+)\]")
    produced_by = FORCED_MATE_SIGN

    def convert(self, text: str) -> Annotation:
        moves = int(text)
        return Annotation(1.0 if moves > 0 else 0.0, self.produced_by, moves)


DEFAULT_RECOGNIZERS: tuple[AnnotationRecognizer, ...] = (
    EvaluationRecognizer(),
    MateRecognizer(),
)


class AnnotationExtractor:
    def __init__(self, recognizers: tuple[AnnotationRecognizer, ...] = DEFAULT_RECOGNIZERS):
        self.recognizers = recognizers

    def extract(self, comment: str) -> list[Annotation]:
        """
        Return the annotations found in ``comment``, in recognizer order.

        Raises AnnotationParseError if a tag matches but its value does not
        parse; nothing from that comment is kept in that case.
        """
        text = comment.lower()
        found = []
        for recognizer in self.recognizers:
            annotation = recognizer.recognize(text)
            if annotation is not None:
                found.append(annotation)
        return found

    def win_probabilities(self, comment: str) -> list[float]:
        return [a.win_probability for a in self.extract(comment)]
