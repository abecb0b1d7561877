from .sparkcluster_spec import (
    RoleGroupConfigSchema,
    RoleGroupSpecSchema,
    RoleSpecSchema,
    SparkClusterSpecSchema,
)
from .master_state import (
    ApplicationSchema,
    WorkerStateSchema,
    MasterStateSchema,
)

__all__ = [
    "RoleGroupConfigSchema",
    "RoleGroupSpecSchema",
    "RoleSpecSchema",
    "SparkClusterSpecSchema",
    "ApplicationSchema",
    "WorkerStateSchema",
    "MasterStateSchema",
]
