"""URL threat-check pipeline.

  - normalizer.py   — raw text → CanonicalURL | InvalidInput
  - heuristics.py   — local re2 denylist / raw-IPv4 pre-check
  - transport.py    — ThreatLookupTransport protocol + live and demo transports
  - factory.py      — transport selection from Config
  - errors.py       — CheckError taxonomy
  - orchestrator.py — ThreatCheckOrchestrator (state machine + classification)
"""
