from enum import Enum
from typing import Dict


class SparkRole(str, Enum):
    """Kinds of workload running in a spark standalone cluster."""

    MASTER = "master"
    WORKER = "worker"
    HISTORY_SERVER = "history-server"

    @classmethod
    def from_str(cls, value: str) -> "SparkRole":
        """Parse a role label value. Raises ValueError for unknown roles."""
        return cls(value)

    @property
    def spec_field(self) -> str:
        """Attribute of `SparkClusterSpec` holding the role."""
        return ROLE_SPEC_FIELDS[self]

    def __str__(self) -> str:
        return self.value


#: Reconciliation order; workers need a master to register with.
ROLE_ORDER = (SparkRole.MASTER, SparkRole.WORKER, SparkRole.HISTORY_SERVER)

ROLE_SPEC_FIELDS: Dict[SparkRole, str] = {
    SparkRole.MASTER: "master",
    SparkRole.WORKER: "worker",
    SparkRole.HISTORY_SERVER: "history_server",
}

#: Start scripts under $SPARK_HOME/sbin. Spark before 3.1 names the worker script start-slave.sh.
ROLE_START_SCRIPTS: Dict[SparkRole, str] = {
    SparkRole.MASTER: "start-master.sh",
    SparkRole.WORKER: "start-worker.sh",
    SparkRole.HISTORY_SERVER: "start-history-server.sh",
}
