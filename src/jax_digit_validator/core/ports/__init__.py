from .checkpoint_store import CheckpointStorePort
from .dataset_provider import BatchSource, DatasetProviderPort
from .metrics_sink import MetricsSinkPort
from .validator_strategy import ValidatorStrategy

__all__ = [
	"BatchSource",
	"CheckpointStorePort",
	"DatasetProviderPort",
	"MetricsSinkPort",
	"ValidatorStrategy",
]
