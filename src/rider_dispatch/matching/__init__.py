"""Rider directory and candidate matching."""

from .match_engine import Candidate, MatchEngine
from .rider_directory import RiderDirectory

__all__ = ["Candidate", "MatchEngine", "RiderDirectory"]
