from .sparkcluster import SparkCluster
from .inventory import ClassifiedInventory, PodInventoryClassifier, RejectedPod
from .replicas import ReplicaAction, ReplicaReconciler
from .reconciliation import (
    ContinuationSignal,
    ReconciliationOrchestrator,
    SignalType,
)

__all__ = [
    "SparkCluster",
    "ClassifiedInventory",
    "PodInventoryClassifier",
    "RejectedPod",
    "ReplicaAction",
    "ReplicaReconciler",
    "ContinuationSignal",
    "ReconciliationOrchestrator",
    "SignalType",
]
