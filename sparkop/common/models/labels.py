from typing import Dict


class ResourceLabels:
    SPARK_DOMAIN: str = "spark.stackable.de/"

    SPARK_ROLE_LABEL = SPARK_DOMAIN + "type"

    SPARK_HASH_LABEL = SPARK_DOMAIN + "hash"

    SPARK_ROLE_GROUP_LABEL = SPARK_DOMAIN + "role-group"


class Labels(ResourceLabels):
    KUBERNETES_DOMAIN = "app.kubernetes.io/"

    KUBERNETES_NAME_LABEL = KUBERNETES_DOMAIN + "name"

    KUBERNETES_INSTANCE_LABEL = KUBERNETES_DOMAIN + "instance"

    KUBERNETES_COMPONENT_LABEL = KUBERNETES_DOMAIN + "component"

    APPLICATION_NAME = "spark"

    KUBERNETES_MANAGED_BY_LABEL = KUBERNETES_DOMAIN + "managed-by"

    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = labels if labels else dict()

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels.copy())
        return self

    def as_dict(self) -> Dict[str, str]:
        """Return labels as dictionary."""
        return self._labels.copy()

    def include(self, label: str, value: str) -> "Labels":
        self.update({label: value})
        return self

    def include_kubernetes_name(self, name: str) -> "Labels":
        return self.include(self.KUBERNETES_NAME_LABEL, name)

    def include_kubernetes_instance(self, instance_name: str) -> "Labels":
        return self.include(self.KUBERNETES_INSTANCE_LABEL, instance_name)

    def include_kubernetes_component(self, component: str) -> "Labels":
        return self.include(self.KUBERNETES_COMPONENT_LABEL, component)

    def include_kubernetes_managed_by(self, operator_name: str) -> "Labels":
        return self.include(self.KUBERNETES_MANAGED_BY_LABEL, operator_name)

    def include_spark_role(self, role: str) -> "Labels":
        return self.include(self.SPARK_ROLE_LABEL, role)

    def include_spark_hash(self, config_hash: str) -> "Labels":
        return self.include(self.SPARK_HASH_LABEL, config_hash)

    def include_spark_role_group(self, role_group: str) -> "Labels":
        return self.include(self.SPARK_ROLE_GROUP_LABEL, role_group)

    def cluster_selectors(self) -> "Labels":
        """Labels which select every pod belonging to the same cluster."""
        selector_labels = [
            self.KUBERNETES_NAME_LABEL,
            self.KUBERNETES_INSTANCE_LABEL,
        ]
        return Labels(
            {
                key: self._labels[key]
                for key in selector_labels
                if key in self._labels
            }
        )

    def __str__(self):
        return f"Labels<{self._labels}>"

    @classmethod
    def generate_default_labels(
        cls,
        cluster_name: str,
        managed_by: str,
    ) -> "Labels":
        labels = Labels()
        return (
            labels.include_kubernetes_name(cls.APPLICATION_NAME)
            .include_kubernetes_instance(cluster_name)
            .include_kubernetes_managed_by(managed_by)
        )

    @classmethod
    def generate_role_group_labels(
        cls,
        cluster_name: str,
        managed_by: str,
        role: str,
        role_group: str,
        config_hash: str,
    ) -> "Labels":
        """Labels carried by every pod and config map of a role group."""
        return (
            cls.generate_default_labels(cluster_name, managed_by)
            .include_kubernetes_component(role)
            .include_spark_role(role)
            .include_spark_role_group(role_group)
            .include_spark_hash(config_hash)
        )
