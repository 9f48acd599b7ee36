"""
Planalytics - deterministic planning analytics engine.

Turns a backlog of work items into dependency-aware execution order,
capacity-bounded sprint composition, risk assessments and calibrated
effort estimates without requiring a live AI backend.
"""

__version__ = "0.1.0"
