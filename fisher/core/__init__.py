"""Core fisher components: lines, position codec, transposition index."""

from .lines import EndReason, Line, ScoredMove
from .transposition import TranspositionIndex
