"""Candidate scans built on the batch candle fetcher."""

from .candidates import Candidate, CandidateScanner, describe_candidate, summarize_candidates

__all__ = ["Candidate", "CandidateScanner", "describe_candidate", "summarize_candidates"]
