"""Core (UI-agnostic) dashboard logic.

This package contains:
- data loading (CSV -> typed pandas records)
- filter normalization
- aggregation, scales and chart geometry (one parametrized pipeline)
- page compute functions (JSON-serializable payloads)
- chart helpers (geometry -> Altair -> Vega-Lite spec dict)
"""
