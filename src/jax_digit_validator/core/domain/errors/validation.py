from __future__ import annotations


class ValidationError(RuntimeError):
    """A validation pass could not produce a metric."""


class EmptyDatasetError(ValidationError):
    """The validation sweep yielded no samples, so no ratio can be formed."""

    def __init__(self, type_tag: str) -> None:
        super().__init__(f"[{type_tag}] validation pass saw 0 samples")
        self.type_tag = type_tag


class ShapeMismatchError(ValidationError):
    """Model output arity does not match the number of labels in a batch."""

    def __init__(self, num_scores: int, num_labels: int) -> None:
        super().__init__(
            f"{num_scores} scores cannot be split evenly over {num_labels} labels"
        )
        self.num_scores = num_scores
        self.num_labels = num_labels


class CheckpointError(RuntimeError):
    """Writing or reading a checkpoint failed.

    Not a `ValidationError`: the metric was computed, only persisting or restoring params failed.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"checkpoint {path!r}: {reason}")
        self.path = path
