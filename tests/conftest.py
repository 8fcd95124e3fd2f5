"""Shared pytest fixtures for monstack tests."""

import json
import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from monstack.cluster import (  # noqa: E402
    ApplyError,
    ClientUnavailableError,
    ClusterError,
    ClusterUnreachableError,
    KubernetesClusterClient,
    NotFoundError,
)
from monstack.config import StackConfig  # noqa: E402
from monstack.logging_config import _reset_handlers  # noqa: E402
from monstack.manifest import ManifestError, load_manifest_dir, load_manifest_file  # noqa: E402


class FakeClusterClient:
    """In-memory ClusterClient that records every call.

    Objects are keyed by (kind, namespace, name); cluster-scoped objects use
    an empty namespace. Deleting a namespace removes everything inside it.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.objects: dict[tuple[str, str, str], dict] = {}
        self.configured = True
        self.reachable = True
        self.fail_paths: dict[str, str] = {}  # path name -> error message
        self.fail_deletes: dict[tuple[str, str], str] = {}
        self.rollout_ready: dict[str, bool] = {}
        self.rollout_errors: dict[str, str] = {}
        self.rows: dict[str, list[dict]] = {}

    # -- helpers -------------------------------------------------------------

    def has(self, kind: str, name: str, namespace: str = '') -> bool:
        return (kind, namespace, name) in self.objects

    def mutating_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ('apply_file', 'apply_directory', 'apply_configmap', 'delete')]

    def _store(self, obj: dict, namespace: str) -> str:
        kind = obj['kind'].lower()
        name = obj['metadata']['name']
        cluster_scoped = kind in ('namespace', 'clusterrole', 'clusterrolebinding')
        ns = '' if cluster_scoped else obj['metadata'].get('namespace') or namespace
        self.objects[(kind, ns, name)] = obj
        return f'{kind}/{name}'

    def _check_path(self, path: Path):
        for fragment, message in self.fail_paths.items():
            if fragment in path.parts or path.name == fragment:
                raise ApplyError(message)

    # -- ClusterClient -------------------------------------------------------

    def cluster_info(self) -> str:
        self.calls.append(('cluster_info',))
        if not self.configured:
            raise ClientUnavailableError("No Kubernetes client configuration found.")
        if not self.reachable:
            raise ClusterUnreachableError("Cannot connect to a Kubernetes cluster. Ensure your kubeconfig is set.")
        return 'Kubernetes control plane is running at https://127.0.0.1:6443 (v1.30.0)'

    def apply_file(self, path: Path, namespace: str) -> list[str]:
        self.calls.append(('apply_file', path))
        self._check_path(path)
        try:
            objects = load_manifest_file(path)
        except ManifestError as e:
            raise ApplyError(str(e)) from e
        return [self._store(obj, namespace) for obj in objects]

    def apply_directory(self, path: Path, namespace: str) -> list[str]:
        self.calls.append(('apply_directory', path))
        self._check_path(path)
        try:
            manifests = load_manifest_dir(path)
        except ManifestError as e:
            raise ApplyError(str(e)) from e
        return [self._store(obj, namespace) for _path, objects in manifests for obj in objects]

    def apply_configmap_from_files(self, name: str, namespace: str, files: list[Path]) -> str:
        self.calls.append(('apply_configmap', name))
        data = {}
        for path in files:
            if not path.exists():
                raise ApplyError(f"configmap/{name}: cannot read {path}")
            data[path.name] = path.read_text()
        obj = {'apiVersion': 'v1', 'kind': 'ConfigMap', 'metadata': {'name': name}, 'data': data}
        return self._store(obj, namespace)

    def delete(self, kind: str, name: str) -> bool:
        self.calls.append(('delete', kind, name))
        if (kind, name) in self.fail_deletes:
            raise ClusterError(self.fail_deletes[(kind, name)])
        key = (kind, '', name)
        if key not in self.objects:
            return False
        del self.objects[key]
        if kind == 'namespace':
            for obj_key in [k for k in self.objects if k[1] == name]:
                del self.objects[obj_key]
        return True

    def wait_for_deletion(self, kind: str, name: str, timeout: float) -> bool:
        self.calls.append(('wait_for_deletion', kind, name))
        return True

    def get(self, kind: str, namespace: str) -> list[dict]:
        self.calls.append(('get', kind, namespace))
        if not self.has('namespace', namespace):
            raise NotFoundError(f"Namespace '{namespace}' not found.")
        return self.rows.get(kind, [])

    def wait_for_rollout(self, kind: str, name: str, namespace: str, timeout: float) -> bool:
        self.calls.append(('wait_for_rollout', kind, name))
        if name in self.rollout_errors:
            raise ClusterError(self.rollout_errors[name])
        return self.rollout_ready.get(name, True)


def _yaml_docs(*docs: str) -> str:
    return '\n---\n'.join(d.strip() for d in docs) + '\n'


def _deployment(name: str, namespace: str = 'monitoring') -> str:
    return f"""
apiVersion: apps/v1
kind: Deployment
metadata:
  name: {name}
  namespace: {namespace}
spec:
  replicas: 1
  selector:
    matchLabels:
      app: {name}
  template:
    metadata:
      labels:
        app: {name}
    spec:
      containers:
        - name: {name}
          image: example/{name}:latest
"""


def _service(name: str, port: int, node_port: int = 0) -> str:
    service_type = 'NodePort' if node_port else 'ClusterIP'
    node_port_line = f"\n      nodePort: {node_port}" if node_port else ''
    return f"""
apiVersion: v1
kind: Service
metadata:
  name: {name}
  namespace: monitoring
spec:
  type: {service_type}
  selector:
    app: {name}
  ports:
    - port: {port}{node_port_line}
"""


def _rbac(name: str) -> str:
    return _yaml_docs(f"""
apiVersion: v1
kind: ServiceAccount
metadata:
  name: {name}
  namespace: monitoring
""", f"""
apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRole
metadata:
  name: {name}
rules:
  - apiGroups: [""]
    resources: ["pods", "nodes", "services", "endpoints"]
    verbs: ["get", "list", "watch"]
""", f"""
apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRoleBinding
metadata:
  name: {name}
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: ClusterRole
  name: {name}
subjects:
  - kind: ServiceAccount
    name: {name}
    namespace: monitoring
""")


@pytest.fixture
def manifest_tree(tmp_path):
    """Create a minimal monitoring manifest tree.

    Layout matches what the deploy scenario expects:
    namespace/, rbac/, kube-state-metrics/, node-exporter/, prometheus/,
    alertmanager/, grafana/provisioning/, grafana/dashboards/,
    grafana/grafana-deployment.yaml
    """
    root = tmp_path / 'monitoring'
    for d in ['namespace', 'rbac', 'kube-state-metrics', 'node-exporter', 'prometheus',
              'alertmanager', 'grafana/provisioning', 'grafana/dashboards']:
        (root / d).mkdir(parents=True, exist_ok=True)

    (root / 'namespace/namespace.yaml').write_text("""
apiVersion: v1
kind: Namespace
metadata:
  name: monitoring
""")

    (root / 'rbac/prometheus.yaml').write_text(_rbac('prometheus'))
    (root / 'rbac/kube-state-metrics.yaml').write_text(_rbac('kube-state-metrics'))

    (root / 'kube-state-metrics/deployment.yaml').write_text(
        _yaml_docs(_deployment('kube-state-metrics'), _service('kube-state-metrics', 8080)))

    (root / 'node-exporter/daemonset.yaml').write_text("""
apiVersion: apps/v1
kind: DaemonSet
metadata:
  name: node-exporter
  namespace: monitoring
spec:
  selector:
    matchLabels:
      app: node-exporter
  template:
    metadata:
      labels:
        app: node-exporter
    spec:
      hostNetwork: true
      containers:
        - name: node-exporter
          image: prom/node-exporter:latest
""")

    (root / 'prometheus/config.yaml').write_text("""
apiVersion: v1
kind: ConfigMap
metadata:
  name: prometheus-config
  namespace: monitoring
data:
  prometheus.yml: |
    global:
      scrape_interval: 15s
""")
    (root / 'prometheus/deployment.yaml').write_text(
        _yaml_docs(_deployment('prometheus'), _service('prometheus', 9090, 30090)))

    (root / 'alertmanager/deployment.yaml').write_text(
        _yaml_docs(_deployment('alertmanager'), _service('alertmanager', 9093, 30093)))

    (root / 'grafana/provisioning/datasources.yaml').write_text("""
apiVersion: v1
kind: ConfigMap
metadata:
  name: grafana-datasources
  namespace: monitoring
data:
  datasources.yaml: |
    apiVersion: 1
    datasources:
      - name: Prometheus
        type: prometheus
        url: http://prometheus:9090
""")

    (root / 'grafana/dashboards/cluster-overview.json').write_text(
        json.dumps({'title': 'Cluster Overview', 'panels': []}))
    (root / 'grafana/dashboards/node-details.json').write_text(
        json.dumps({'title': 'Node Details', 'panels': []}))

    (root / 'grafana/grafana-deployment.yaml').write_text(
        _yaml_docs(_deployment('grafana'), _service('grafana', 3000, 30030)))

    return root


@pytest.fixture
def stack_config(manifest_tree):
    """StackConfig pointing at the temporary manifest tree."""
    return StackConfig(manifest_dir=manifest_tree, rollout_timeout=5, delete_timeout=5, poll_interval=0.01)


@pytest.fixture
def fake_client():
    """Recording in-memory cluster client."""
    return FakeClusterClient()


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    """Keep the developer's own config and MONSTACK_* variables out of tests."""
    for var in ('MONSTACK_CONFIG', 'MONSTACK_NAMESPACE', 'MONSTACK_MANIFEST_DIR',
                'MONSTACK_ROLLOUT_TIMEOUT', 'NO_COLOR'):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr('monstack.config.default_config_path',
                        lambda: tmp_path / 'no-such-dir' / 'config.yaml')


@pytest.fixture(autouse=True)
def _drop_console_handler():
    """Remove the console handler main() installs so it never outlives capsys."""
    yield
    _reset_handlers(logging.getLogger())


@pytest.fixture
def kube_client():
    """KubernetesClusterClient with every API replaced by a mock."""
    client = KubernetesClusterClient(poll_interval=0.01)
    client._api_client = MagicMock()
    client._api_client.configuration.host = 'https://10.0.0.1:6443'
    client._core = MagicMock()
    client._apps = MagicMock()
    client._rbac = MagicMock()
    client._dynamic = MagicMock()
    return client
