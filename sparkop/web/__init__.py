from .client import SparkMasterClient
from .prober import ClusterStateProber

__all__ = [
    "SparkMasterClient",
    "ClusterStateProber",
]
