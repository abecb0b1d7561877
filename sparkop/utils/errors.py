import json
import kopf
import kubernetes_asyncio
from typing import Optional, Union
from sparkop.common.models.refs import ObjectRef, RoleGroupRef

_ALREADY_EXISTS = "alreadyexists"


def _reason(ex: kubernetes_asyncio.client.ApiException) -> str:
    try:
        err = json.loads(ex.body) if ex.body else {}
    except (json.JSONDecodeError, TypeError):
        return ""
    return err.get("reason", "").lower()


def already_exists_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return _reason(ex) == _ALREADY_EXISTS


def describe_api_exception(ex: kubernetes_asyncio.client.ApiException) -> str:
    """Render an ApiException as a short, serializable message."""
    error_msg = f"Kubernetes API error ({ex.status}): {ex.reason}"
    try:
        if ex.body:
            body = json.loads(ex.body)
            if "message" in body:
                error_msg = f"{error_msg} - {body['message']}"
    except (json.JSONDecodeError, AttributeError, TypeError):
        pass
    return error_msg


class SparkClusterError(Exception):
    """Base class for errors raised while reconciling a SparkCluster.

    Every error carries the reference of the object it concerns so it can be
    logged and reported without re-deriving context. `permanent` errors need a
    change of the resource to resolve; all others are retried.
    """

    permanent: bool = False
    template: str = "reconciliation of {ref} failed"

    def __init__(
        self,
        ref: Union[ObjectRef, RoleGroupRef],
        detail: Optional[str] = None,
        **context,
    ) -> None:
        self.ref = ref
        self.detail = detail
        self.context = context
        message = self.template.format(ref=ref, **context)
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ObjectMissingMetadataForOwnerRef(SparkClusterError):
    permanent = True
    template = "object {ref} is missing metadata to build owner reference"


class ObjectHasNoVersion(SparkClusterError):
    permanent = True
    template = "object {ref} defines no version"


class MasterRoleGroupDefaultExpected(SparkClusterError):
    permanent = True
    template = "a master role group named 'default' is expected in {ref}"


class InvalidPort(SparkClusterError):
    permanent = True
    template = "invalid port configuration {setting}={value!r} for {ref}"


class CreatePodError(SparkClusterError):
    template = "failed to create pod for {ref}"


class DeletePodError(SparkClusterError):
    template = "failed to delete pod {pod_name} of {ref}"


class ApplyRoleGroupConfig(SparkClusterError):
    template = "failed to apply ConfigMap for {ref}"


class ApplyRoleService(SparkClusterError):
    template = "failed to apply master Service for {ref}"


def wrap_api_exception(error_cls, ref, ex: Exception, **context) -> SparkClusterError:
    """Build a typed reconciliation error from a lower level client failure."""
    if isinstance(ex, kubernetes_asyncio.client.ApiException):
        detail = describe_api_exception(ex)
    else:
        detail = str(ex) or ex.__class__.__name__
    return error_cls(ref, detail, **context)


def convert_reconcile_error(ex: SparkClusterError, delay: float):
    """
    Convert a reconciliation error to a Kopf-friendly exception.

    Raises:
        kopf.PermanentError for configuration errors (won't retry),
        kopf.TemporaryError for everything else (will retry after `delay`).
    """
    if ex.permanent:
        raise kopf.PermanentError(str(ex)) from ex
    raise kopf.TemporaryError(str(ex), delay=delay) from ex
