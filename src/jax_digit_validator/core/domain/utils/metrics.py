from __future__ import annotations

import numpy as np

from jax_digit_validator.core.domain.errors.validation import ShapeMismatchError


def classes_per_sample(num_scores: int, num_labels: int) -> int:
    """Number of class scores per sample in a flat, sample-major score vector.

    Raises:
        ShapeMismatchError: if the scores do not split evenly over the labels.
    """

    if num_labels == 0:
        if num_scores == 0:
            return 0
        raise ShapeMismatchError(num_scores, num_labels)
    if num_scores % num_labels != 0:
        raise ShapeMismatchError(num_scores, num_labels)
    return num_scores // num_labels


def argmax_predictions(scores: np.ndarray, num_classes: int) -> np.ndarray:
    """Predicted class per sample.

    `np.argmax` returns the first occurrence of the maximum, so ties go to the
    lowest class index.
    """

    rows = np.asarray(scores).reshape(-1, num_classes)
    return np.argmax(rows, axis=-1)


def count_correct(scores: np.ndarray, labels: np.ndarray) -> int:
    """Count samples whose argmax class equals the ground-truth label.

    Args:
        scores: flat score vector of shape (n * num_classes,); sample i owns the slice
            [i * num_classes, (i + 1) * num_classes).
        labels: flat integer class indices of shape (n,).

    Returns:
        Number of correct samples in [0, n].
    """

    scores = np.ravel(np.asarray(scores))
    labels = np.ravel(np.asarray(labels))
    num_classes = classes_per_sample(scores.size, labels.size)
    if num_classes == 0:
        return 0

    preds = argmax_predictions(scores, num_classes)
    return int(np.sum(preds == labels.astype(np.int64)))


def cross_entropy_sum(scores: np.ndarray, labels: np.ndarray) -> float:
    """Summed softmax cross entropy of flat logits against integer labels."""

    scores = np.ravel(np.asarray(scores, dtype=np.float64))
    labels = np.ravel(np.asarray(labels)).astype(np.int64)
    num_classes = classes_per_sample(scores.size, labels.size)
    if num_classes == 0:
        return 0.0

    logits = scores.reshape(-1, num_classes)
    shifted = logits - logits.max(axis=-1, keepdims=True)
    log_norm = np.log(np.exp(shifted).sum(axis=-1))
    picked = shifted[np.arange(labels.size), labels]
    return float(np.sum(log_norm - picked))
