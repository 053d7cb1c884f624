"""Command extractors: the deterministic pattern parser and the model-backed parser."""

from . import corrections, lexicon, model_parser, pattern_parser, title, types

__all__ = ["corrections", "lexicon", "model_parser", "pattern_parser", "title", "types"]
