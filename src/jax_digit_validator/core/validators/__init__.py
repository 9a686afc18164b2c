from .accuracy import AccuracyValidator
from .cross_entropy import CrossEntropyValidator
from .registry import create_validator, create_validators

__all__ = [
	"AccuracyValidator",
	"CrossEntropyValidator",
	"create_validator",
	"create_validators",
]
