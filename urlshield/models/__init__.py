"""URL Shield models package.

Defines the shared data contracts used across the check pipeline and the
HTTP surface:

  - verdict.py   — Verdict, CheckOutcome, StateChange, error/invalid enums
  - query.py     — ThreatQuery, ThreatMatch, ThreatQueryResult (lookup contracts)
  - responses.py — HTTP response builders for verdict / invalid / unknown outcomes
"""
