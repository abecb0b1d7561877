from .role import SparkRole, ROLE_ORDER
from .sparkcluster_spec import (
    RoleGroupConfig,
    RoleGroupSpec,
    RoleSpec,
    SparkClusterSpec,
)
from .sparkcluster_resources import SparkClusterResources
from .topology import RoleGroup, DesiredTopology
from .master_state import (
    Application,
    ApplicationState,
    WorkerState,
    MasterState,
)

__all__ = [
    "SparkRole",
    "ROLE_ORDER",
    "RoleGroupConfig",
    "RoleGroupSpec",
    "RoleSpec",
    "SparkClusterSpec",
    "SparkClusterResources",
    "RoleGroup",
    "DesiredTopology",
    "Application",
    "ApplicationState",
    "WorkerState",
    "MasterState",
]
