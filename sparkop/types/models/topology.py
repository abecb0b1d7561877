from typing import Dict, Iterator, NamedTuple, Optional, Set
from sparkop.types.models.role import SparkRole, ROLE_ORDER
from sparkop.types.models.sparkcluster_spec import RoleGroupConfig


class RoleGroup(NamedTuple):
    """Desired state of one (role, configuration hash) bucket."""

    role: SparkRole
    name: str
    config_hash: str
    instances: int
    config: RoleGroupConfig
    node_selector: Optional[Dict[str, str]] = None


class DesiredTopology:
    """Desired instance counts per role and configuration hash.

    A role missing from the topology is not configured at all (e.g. a cluster
    without history server). Built fresh for every reconciliation pass.
    """

    _groups: Dict[SparkRole, Dict[str, RoleGroup]]

    def __init__(self, groups: Dict[SparkRole, Dict[str, RoleGroup]]) -> None:
        self._groups = {role: dict(by_hash) for role, by_hash in groups.items()}

    @classmethod
    def from_instances(
        cls, instances: Dict[SparkRole, Dict[str, int]]
    ) -> "DesiredTopology":
        """Build a topology from bare counts, naming every group after its hash."""
        return cls(
            {
                role: {
                    config_hash: RoleGroup(
                        role=role,
                        name=config_hash,
                        config_hash=config_hash,
                        instances=count,
                        config=RoleGroupConfig(),
                    )
                    for config_hash, count in by_hash.items()
                }
                for role, by_hash in instances.items()
            }
        )

    def roles(self) -> Iterator[SparkRole]:
        """Configured roles in reconciliation order."""
        return (role for role in ROLE_ORDER if role in self._groups)

    def role_groups(self, role: SparkRole) -> Optional[Dict[str, RoleGroup]]:
        """Role groups of `role` keyed by configuration hash, None if the role is not configured."""
        return self._groups.get(role)

    def hashes(self, role: SparkRole) -> Set[str]:
        return set(self._groups.get(role, {}))

    def group(self, role: SparkRole, config_hash: str) -> Optional[RoleGroup]:
        return self._groups.get(role, {}).get(config_hash)

    def instances(self, role: SparkRole, config_hash: Optional[str] = None) -> int:
        """Desired instances of one bucket, or of the whole role when no hash is given."""
        groups = self._groups.get(role, {})
        if config_hash is not None:
            group = groups.get(config_hash)
            return group.instances if group else 0
        return sum(group.instances for group in groups.values())

    def __contains__(self, role: SparkRole) -> bool:
        return role in self._groups

    def __repr__(self) -> str:
        counts = {
            str(role): {h: g.instances for h, g in by_hash.items()}
            for role, by_hash in self._groups.items()
        }
        return f"DesiredTopology<{counts}>"
