"""URL Shield — URL threat-check pipeline.

Public entry points:
  - normalize()                — raw text → CanonicalURL | InvalidInput
  - ThreatCheckOrchestrator    — async check() with observable state changes
"""

from urlshield.checker.normalizer import normalize
from urlshield.checker.orchestrator import ThreatCheckOrchestrator

__all__ = ["normalize", "ThreatCheckOrchestrator"]

__version__ = "1.0.0"
