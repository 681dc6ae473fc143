"""
autoremedy — risk-gated auto-remediation pipeline

File: src/autoremedy/__init__.py

Purpose
- Package root. Takes an issue report, triages it for risk, and (when safe)
  generates, validates and commits a fix under a strict token budget.

Import boundary rules
- No side effects at import time (no config loading, no logging setup).
- Heavy planes are imported lazily by the CLI.
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
