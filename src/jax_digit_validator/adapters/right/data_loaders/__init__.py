# The TFDS provider is not re-exported here so that importing the npz provider does
# not pull in TensorFlow.
from .npz_classification import NpzClassificationDatasetProvider

__all__ = [
	"NpzClassificationDatasetProvider",
]
