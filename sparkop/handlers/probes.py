import kopf
from sparkop.utils.helpers import now
from sparkop.handlers.sparkcluster import reconciliation_locks


# Liveness probe
@kopf.on.probe(id='now')
def get_current_timestamp(**kwargs):
    return now()


@kopf.on.probe(id='clusters')
def count_known_clusters(**kwargs):
    """Number of live SparkClusters this operator has reconciled."""
    return len(reconciliation_locks)
