from .training import TrainingError
from .validation import (
    CheckpointError,
    EmptyDatasetError,
    ShapeMismatchError,
    ValidationError,
)

__all__ = [
	"CheckpointError",
	"EmptyDatasetError",
	"ShapeMismatchError",
	"TrainingError",
	"ValidationError",
]
