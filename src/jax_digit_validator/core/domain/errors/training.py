from __future__ import annotations


class TrainingError(ValueError):
    """Invalid training setup (dataset metadata, validator selection, ...)."""
