"""Domain entities: batches, dataset metadata, model functions and validation results.

Pure structures used by the core. Keep filesystem/network I/O in adapters.
"""

from .base import *
from .dataset import *
from .model import *
