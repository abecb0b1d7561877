from typing import NamedTuple, Optional


class ObjectRef(NamedTuple):
    """Reference to a namespaced kubernetes object."""

    kind: str
    name: str
    namespace: Optional[str]

    def __str__(self) -> str:
        return f"{self.kind}/{self.name}.{self.namespace or 'default'}"


class RoleGroupRef(NamedTuple):
    """Reference to one role group of a cluster."""

    cluster: ObjectRef
    role: str
    role_group: str

    def __str__(self) -> str:
        return f"rolegroup {self.role_group} of role {self.role} of {self.cluster}"
