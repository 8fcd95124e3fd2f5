"""Cluster API client.

All cluster mutation and queries go through the ClusterClient protocol.
KubernetesClusterClient implements it with the official kubernetes client:

- manifests are applied with server-side apply under one field manager, so
  re-applying the same files converges instead of duplicating objects
- deletes treat "not found" as already done
- failures surface as typed ClusterError subclasses instead of exit codes
"""

import base64
import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, runtime_checkable

import urllib3
from kubernetes import client as k8s
from kubernetes import config as kube_config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import DynamicApiError, ResourceNotFoundError

from monstack.common import format_age
from monstack.manifest import ManifestError, describe, load_manifest_dir, load_manifest_file

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class ClusterError(Exception):
    """A cluster operation failed."""


class PrerequisiteError(ClusterError):
    """The cluster cannot be used at all."""


class ClientUnavailableError(PrerequisiteError):
    """No usable client configuration (kubeconfig or in-cluster credentials)."""


class ClusterUnreachableError(PrerequisiteError):
    """The API server did not answer."""


class ApplyError(ClusterError):
    """A manifest could not be applied."""


class NotFoundError(ClusterError):
    """A namespace, object or resource type does not exist."""


@runtime_checkable
class ClusterClient(Protocol):
    """Operations the orchestrator needs from a cluster."""

    def cluster_info(self) -> str:
        """Check reachability and return a one-line cluster identity."""
        ...

    def apply_file(self, path: Path, namespace: str) -> list[str]:
        """Apply every object in a manifest file."""
        ...

    def apply_directory(self, path: Path, namespace: str) -> list[str]:
        """Apply every manifest file in a directory."""
        ...

    def apply_configmap_from_files(self, name: str, namespace: str, files: list[Path]) -> str:
        """Create or replace a ConfigMap whose keys are file names and values file contents."""
        ...

    def delete(self, kind: str, name: str) -> bool:
        """Delete a cluster object by name. Returns False if it was already absent."""
        ...

    def wait_for_deletion(self, kind: str, name: str, timeout: float) -> bool:
        """Wait until an object is gone. Returns False on timeout."""
        ...

    def get(self, kind: str, namespace: str) -> list[dict]:
        """List objects of a resource type in a namespace as display rows."""
        ...

    def wait_for_rollout(self, kind: str, name: str, namespace: str, timeout: float) -> bool:
        """Wait for a workload rollout to complete. Returns False on timeout."""
        ...


# -----------------------------------------------------------------------------
# Display rows
# -----------------------------------------------------------------------------

def _summarize_pod(pod) -> dict[str, Any]:
    statuses = pod.status.container_statuses or []
    ready = sum(1 for cs in statuses if cs.ready)
    total = len(pod.spec.containers or []) or len(statuses)

    status = pod.status.reason or pod.status.phase or 'Unknown'
    for cs in statuses:
        state = cs.state
        if state and state.waiting and state.waiting.reason:
            status = state.waiting.reason
        elif state and state.terminated and state.terminated.reason:
            status = state.terminated.reason
    if pod.metadata.deletion_timestamp:
        status = 'Terminating'

    return {
        'NAME': pod.metadata.name,
        'READY': f'{ready}/{total}',
        'STATUS': status,
        'RESTARTS': sum(cs.restart_count or 0 for cs in statuses),
        'AGE': format_age(pod.metadata.creation_timestamp),
        'IP': pod.status.pod_ip or '<none>',
        'NODE': pod.spec.node_name or '<none>',
    }


def _service_external_ip(svc) -> str:
    ingress = (svc.status.load_balancer.ingress or []) if svc.status and svc.status.load_balancer else []
    addresses = [i.ip or i.hostname for i in ingress if i.ip or i.hostname]
    addresses.extend(svc.spec.external_i_ps or [])
    if addresses:
        return ','.join(addresses)
    return '<pending>' if svc.spec.type == 'LoadBalancer' else '<none>'


def _summarize_service(svc) -> dict[str, Any]:
    ports = []
    for port in svc.spec.ports or []:
        if port.node_port:
            ports.append(f'{port.port}:{port.node_port}/{port.protocol}')
        else:
            ports.append(f'{port.port}/{port.protocol}')
    return {
        'NAME': svc.metadata.name,
        'TYPE': svc.spec.type,
        'CLUSTER-IP': svc.spec.cluster_ip or '<none>',
        'EXTERNAL-IP': _service_external_ip(svc),
        'PORT(S)': ','.join(ports) or '<none>',
        'AGE': format_age(svc.metadata.creation_timestamp),
    }


def _summarize_deployment(dep) -> dict[str, Any]:
    desired = dep.spec.replicas if dep.spec.replicas is not None else 1
    return {
        'NAME': dep.metadata.name,
        'READY': f'{dep.status.ready_replicas or 0}/{desired}',
        'UP-TO-DATE': dep.status.updated_replicas or 0,
        'AVAILABLE': dep.status.available_replicas or 0,
        'AGE': format_age(dep.metadata.creation_timestamp),
    }


def _summarize_daemonset(ds) -> dict[str, Any]:
    return {
        'NAME': ds.metadata.name,
        'DESIRED': ds.status.desired_number_scheduled or 0,
        'CURRENT': ds.status.current_number_scheduled or 0,
        'READY': ds.status.number_ready or 0,
        'UP-TO-DATE': ds.status.updated_number_scheduled or 0,
        'AVAILABLE': ds.status.number_available or 0,
        'AGE': format_age(ds.metadata.creation_timestamp),
    }


COLUMNS = {
    'pods': ['NAME', 'READY', 'STATUS', 'RESTARTS', 'AGE', 'IP', 'NODE'],
    'services': ['NAME', 'TYPE', 'CLUSTER-IP', 'EXTERNAL-IP', 'PORT(S)', 'AGE'],
    'deployments': ['NAME', 'READY', 'UP-TO-DATE', 'AVAILABLE', 'AGE'],
    'daemonsets': ['NAME', 'DESIRED', 'CURRENT', 'READY', 'UP-TO-DATE', 'AVAILABLE', 'AGE'],
}


# -----------------------------------------------------------------------------
# Rollout checks (same conditions as `kubectl rollout status`)
# -----------------------------------------------------------------------------

def deployment_rollout_status(dep) -> tuple[bool, str]:
    """Return (done, message) for a Deployment."""
    name = dep.metadata.name
    status = dep.status
    if (status.observed_generation or 0) < (dep.metadata.generation or 0):
        return False, f'Waiting for deployment "{name}" spec update to be observed...'

    for cond in status.conditions or []:
        if cond.type == 'Progressing' and cond.reason == 'ProgressDeadlineExceeded':
            raise ClusterError(f'deployment "{name}" exceeded its progress deadline')

    desired = dep.spec.replicas if dep.spec.replicas is not None else 1
    updated = status.updated_replicas or 0
    replicas = status.replicas or 0
    available = status.available_replicas or 0

    if updated < desired:
        return False, (f'Waiting for deployment "{name}" rollout to finish: '
                       f'{updated} out of {desired} new replicas have been updated...')
    if replicas > updated:
        return False, (f'Waiting for deployment "{name}" rollout to finish: '
                       f'{replicas - updated} old replicas are pending termination...')
    if available < updated:
        return False, (f'Waiting for deployment "{name}" rollout to finish: '
                       f'{available} of {updated} updated replicas are available...')
    return True, f'deployment "{name}" successfully rolled out'


def daemonset_rollout_status(ds) -> tuple[bool, str]:
    """Return (done, message) for a DaemonSet."""
    name = ds.metadata.name
    status = ds.status
    if (status.observed_generation or 0) < (ds.metadata.generation or 0):
        return False, f'Waiting for daemon set "{name}" spec update to be observed...'

    desired = status.desired_number_scheduled or 0
    updated = status.updated_number_scheduled or 0
    available = status.number_available or 0
    if updated < desired:
        return False, (f'Waiting for daemon set "{name}" rollout to finish: '
                       f'{updated} out of {desired} new pods have been updated...')
    if available < desired:
        return False, (f'Waiting for daemon set "{name}" rollout to finish: '
                       f'{available} of {desired} updated pods are available...')
    return True, f'daemon set "{name}" successfully rolled out'


# -----------------------------------------------------------------------------
# Kubernetes implementation
# -----------------------------------------------------------------------------

class KubernetesClusterClient:
    """ClusterClient backed by the kubernetes Python client.

    Configuration is loaded lazily on first use: an explicit kubeconfig/context
    if given, else the default kubeconfig, else in-cluster service account
    credentials.
    """

    def __init__(
        self,
        kubeconfig: Optional[Path] = None,
        context: Optional[str] = None,
        field_manager: str = 'monstack',
        poll_interval: float = 2,
        api_client: Optional[k8s.ApiClient] = None,
    ):
        self.kubeconfig = kubeconfig
        self.context = context
        self.field_manager = field_manager
        self.poll_interval = poll_interval
        self._api_client = api_client
        self._core: Optional[k8s.CoreV1Api] = None
        self._apps: Optional[k8s.AppsV1Api] = None
        self._rbac: Optional[k8s.RbacAuthorizationV1Api] = None
        self._dynamic: Optional[DynamicClient] = None

    # -- connection ----------------------------------------------------------

    def connect(self) -> k8s.ApiClient:
        """Build the API client from kubeconfig or in-cluster credentials."""
        if self._api_client is not None:
            return self._api_client

        config_file = str(self.kubeconfig) if self.kubeconfig else None
        try:
            self._api_client = kube_config.new_client_from_config(
                config_file=config_file, context=self.context
            )
        except (ConfigException, OSError) as e:
            if self.kubeconfig or self.context:
                raise ClientUnavailableError(f"Cannot load kubeconfig: {e}") from e
            logger.debug(f"No kubeconfig ({e}), trying in-cluster configuration")
            configuration = k8s.Configuration()
            try:
                kube_config.load_incluster_config(client_configuration=configuration)
            except ConfigException as incluster_error:
                raise ClientUnavailableError(
                    "No Kubernetes client configuration found. "
                    "Set KUBECONFIG, pass --kubeconfig, or run inside a cluster."
                ) from incluster_error
            self._api_client = k8s.ApiClient(configuration)

        if not self._api_client.configuration.verify_ssl:
            # Self-signed API server certs (kind, k3s with insecure-skip-tls-verify)
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        return self._api_client

    @property
    def core(self) -> k8s.CoreV1Api:
        if self._core is None:
            self._core = k8s.CoreV1Api(self.connect())
        return self._core

    @property
    def apps(self) -> k8s.AppsV1Api:
        if self._apps is None:
            self._apps = k8s.AppsV1Api(self.connect())
        return self._apps

    @property
    def rbac(self) -> k8s.RbacAuthorizationV1Api:
        if self._rbac is None:
            self._rbac = k8s.RbacAuthorizationV1Api(self.connect())
        return self._rbac

    @property
    def dynamic(self) -> DynamicClient:
        """Discovery-backed client used for applying arbitrary kinds."""
        if self._dynamic is None:
            try:
                self._dynamic = DynamicClient(self.connect())
            except (ApiException, urllib3.exceptions.HTTPError) as e:
                raise ClusterError(f"API discovery failed: {e}") from e
        return self._dynamic

    def cluster_info(self) -> str:
        api_client = self.connect()
        try:
            version = k8s.VersionApi(api_client).get_code(_request_timeout=10)
        except ApiException as e:
            raise ClusterUnreachableError(
                f"Cannot connect to a Kubernetes cluster ({e.status} {e.reason}). "
                "Ensure your kubeconfig is set."
            ) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise ClusterUnreachableError(
                "Cannot connect to a Kubernetes cluster. Ensure your kubeconfig is set."
            ) from e
        host = api_client.configuration.host
        return f"Kubernetes control plane is running at {host} ({version.git_version})"

    # -- apply ---------------------------------------------------------------

    def _apply_object(self, obj: dict, namespace: str) -> str:
        ident = describe(obj)
        try:
            resource = self.dynamic.resources.get(api_version=obj['apiVersion'], kind=obj['kind'])
        except ResourceNotFoundError as e:
            raise ApplyError(
                f"{ident}: resource type {obj['apiVersion']}/{obj['kind']} is not served by the cluster"
            ) from e

        target_namespace = None
        if resource.namespaced:
            target_namespace = obj['metadata'].get('namespace') or namespace

        try:
            self.dynamic.server_side_apply(
                resource,
                body=obj,
                namespace=target_namespace,
                field_manager=self.field_manager,
                force_conflicts=True,
            )
        except DynamicApiError as e:
            raise ApplyError(f"{ident}: {e.summary()}") from e
        except urllib3.exceptions.HTTPError as e:
            raise ApplyError(f"{ident}: {e}") from e

        logger.debug(f"{ident} applied")
        return ident

    def apply_file(self, path: Path, namespace: str) -> list[str]:
        try:
            objects = load_manifest_file(path)
        except ManifestError as e:
            raise ApplyError(str(e)) from e
        return [self._apply_object(obj, namespace) for obj in objects]

    def apply_directory(self, path: Path, namespace: str) -> list[str]:
        try:
            manifests = load_manifest_dir(path)
        except ManifestError as e:
            raise ApplyError(str(e)) from e
        applied = []
        for _path, objects in manifests:
            applied.extend(self._apply_object(obj, namespace) for obj in objects)
        return applied

    def apply_configmap_from_files(self, name: str, namespace: str, files: list[Path]) -> str:
        return self._apply_object(build_configmap(name, namespace, files), namespace)

    # -- delete --------------------------------------------------------------

    def _object_calls(self, kind: str) -> tuple[Callable, Callable]:
        calls = {
            'namespace': (self.core.delete_namespace, self.core.read_namespace),
            'clusterrole': (self.rbac.delete_cluster_role, self.rbac.read_cluster_role),
            'clusterrolebinding': (
                self.rbac.delete_cluster_role_binding,
                self.rbac.read_cluster_role_binding,
            ),
        }
        if kind not in calls:
            raise ValueError(f"Unsupported kind for delete: {kind}")
        return calls[kind]

    def delete(self, kind: str, name: str) -> bool:
        delete_call, _read = self._object_calls(kind)
        try:
            delete_call(name, _request_timeout=REQUEST_TIMEOUT)
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"{kind}/{name} not found")
                return False
            raise ClusterError(f"Failed to delete {kind}/{name}: {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise ClusterError(f"Failed to delete {kind}/{name}: {e}") from e
        return True

    def wait_for_deletion(self, kind: str, name: str, timeout: float) -> bool:
        _delete, read_call = self._object_calls(kind)
        deadline = time.monotonic() + timeout
        while True:
            try:
                read_call(name, _request_timeout=REQUEST_TIMEOUT)
            except ApiException as e:
                if e.status == 404:
                    return True
                raise ClusterError(f"Failed to read {kind}/{name}: {e.status} {e.reason}") from e
            except urllib3.exceptions.HTTPError as e:
                raise ClusterError(f"Failed to read {kind}/{name}: {e}") from e
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            logger.debug(f"Waiting for {kind}/{name} to be deleted...")
            time.sleep(min(self.poll_interval, remaining))

    # -- read ----------------------------------------------------------------

    def get(self, kind: str, namespace: str) -> list[dict]:
        listers = {
            'pods': (self.core.list_namespaced_pod, _summarize_pod),
            'services': (self.core.list_namespaced_service, _summarize_service),
            'deployments': (self.apps.list_namespaced_deployment, _summarize_deployment),
            'daemonsets': (self.apps.list_namespaced_daemon_set, _summarize_daemonset),
        }
        if kind not in listers:
            raise NotFoundError(f'the server doesn\'t have a resource type "{kind}"')
        list_call, summarize = listers[kind]

        try:
            # Listing a missing namespace returns an empty list, so check first
            self.core.read_namespace(namespace, _request_timeout=REQUEST_TIMEOUT)
            items = list_call(namespace, _request_timeout=REQUEST_TIMEOUT).items
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"Namespace '{namespace}' not found.") from e
            raise ClusterError(f"Failed to list {kind} in {namespace}: {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise ClusterError(f"Failed to list {kind} in {namespace}: {e}") from e

        return [summarize(item) for item in sorted(items, key=lambda i: i.metadata.name)]

    def wait_for_rollout(self, kind: str, name: str, namespace: str, timeout: float) -> bool:
        checks = {
            'deployment': (self.apps.read_namespaced_deployment_status, deployment_rollout_status),
            'daemonset': (self.apps.read_namespaced_daemon_set_status, daemonset_rollout_status),
        }
        if kind not in checks:
            raise ValueError(f"Unsupported kind for rollout: {kind}")
        read_call, check = checks[kind]

        deadline = time.monotonic() + timeout
        while True:
            try:
                obj = read_call(name, namespace, _request_timeout=REQUEST_TIMEOUT)
            except ApiException as e:
                if e.status != 404:
                    raise ClusterError(f"Failed to read {kind}/{name}: {e.status} {e.reason}") from e
                message = f'{kind} "{name}" not found'
            except urllib3.exceptions.HTTPError as e:
                raise ClusterError(f"Failed to read {kind}/{name}: {e}") from e
            else:
                done, message = check(obj)
                if done:
                    logger.debug(message)
                    return True

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            logger.debug(message)
            time.sleep(min(self.poll_interval, remaining))


def build_configmap(name: str, namespace: str, files: list[Path]) -> dict:
    """Render a ConfigMap from files, like `kubectl create configmap --from-file`.

    Keys are file base names. Content that is not valid UTF-8 goes to binaryData.
    """
    data: dict[str, str] = {}
    binary_data: dict[str, str] = {}
    for path in files:
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise ApplyError(f"configmap/{name}: cannot read {path}: {e}") from e
        try:
            data[path.name] = raw.decode('utf-8')
        except UnicodeDecodeError:
            binary_data[path.name] = base64.b64encode(raw).decode('ascii')

    body: dict[str, Any] = {
        'apiVersion': 'v1',
        'kind': 'ConfigMap',
        'metadata': {'name': name, 'namespace': namespace},
        'data': data,
    }
    if binary_data:
        body['binaryData'] = binary_data
    return body
