"""Stack configuration.

Configuration is resolved in increasing precedence:
1. StackConfig defaults
2. YAML config file (--config, $MONSTACK_CONFIG, ~/.config/monstack/config.yaml)
3. Environment variables (MONSTACK_NAMESPACE, MONSTACK_MANIFEST_DIR, MONSTACK_ROLLOUT_TIMEOUT)
4. CLI overrides

The config file is a flat mapping of StackConfig fields, e.g.:

    namespace: monitoring
    manifest_dir: /opt/monstack/monitoring
    context: kind-lab
    rollout_timeout: 180
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml

NAMESPACE = 'monitoring'

# (configmap name, dashboard file relative to manifest_dir)
DASHBOARD_CONFIGMAPS = (
    ('grafana-dashboard-cluster', 'grafana/dashboards/cluster-overview.json'),
    ('grafana-dashboard-node', 'grafana/dashboards/node-details.json'),
)

# Deployments waited on after apply, in order
ROLLOUT_DEPLOYMENTS = ('prometheus', 'grafana', 'alertmanager')

# Cluster-scoped RBAC objects outside the namespace
CLUSTER_RBAC_NAMES = ('prometheus', 'kube-state-metrics')

# (label, service, node port, port-forward pair, note)
ACCESS_ENDPOINTS = (
    ('Prometheus', 'prometheus', 30090, '9090:9090', ''),
    ('Grafana', 'grafana', 30030, '3000:3000', '(admin/admin)'),
    ('Alertmanager', 'alertmanager', 30093, '9093:9093', ''),
)

ENV_PREFIX = 'MONSTACK_'


class ConfigError(Exception):
    """Configuration error."""


def get_base_dir() -> Path:
    """Get the monstack install root."""
    return Path(__file__).parent.parent.parent  # src/monstack/ -> repo root


def default_config_path() -> Path:
    """User-level config file location."""
    return Path.home() / '.config' / 'monstack' / 'config.yaml'


@dataclass
class StackConfig:
    """Settings for one deploy/teardown/status run."""
    namespace: str = NAMESPACE
    manifest_dir: Path = field(default_factory=lambda: get_base_dir() / 'monitoring')
    kubeconfig: Optional[Path] = None
    context: Optional[str] = None
    rollout_timeout: int = 120
    delete_timeout: int = 300
    poll_interval: float = 2
    field_manager: str = 'monstack'

    def __post_init__(self):
        if isinstance(self.manifest_dir, str):
            self.manifest_dir = Path(self.manifest_dir).expanduser()
        if isinstance(self.kubeconfig, str):
            self.kubeconfig = Path(self.kubeconfig).expanduser()

        if not self.namespace:
            raise ConfigError("namespace must not be empty")
        for name in ('rollout_timeout', 'delete_timeout', 'poll_interval'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"{name} must be a positive number, got {value!r}")

    def manifest_path(self, relative: str) -> Path:
        """Resolve a manifest file or directory under manifest_dir."""
        return self.manifest_dir / relative


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML config file into a mapping."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def _env_values() -> dict[str, Any]:
    """Collect MONSTACK_* overrides from the environment."""
    values: dict[str, Any] = {}
    if namespace := os.environ.get(f'{ENV_PREFIX}NAMESPACE'):
        values['namespace'] = namespace
    if manifest_dir := os.environ.get(f'{ENV_PREFIX}MANIFEST_DIR'):
        values['manifest_dir'] = manifest_dir
    if timeout := os.environ.get(f'{ENV_PREFIX}ROLLOUT_TIMEOUT'):
        try:
            values['rollout_timeout'] = int(timeout)
        except ValueError as e:
            raise ConfigError(f"{ENV_PREFIX}ROLLOUT_TIMEOUT must be an integer, got '{timeout}'") from e
    return values


def find_config_file(path: Optional[Path] = None) -> Optional[Path]:
    """Locate the config file to load.

    Resolution order:
    1. Explicit path (must exist)
    2. $MONSTACK_CONFIG (must exist)
    3. ~/.config/monstack/config.yaml (if present)
    """
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file {path} does not exist")
        return path

    if env_path := os.environ.get(f'{ENV_PREFIX}CONFIG'):
        candidate = Path(env_path).expanduser()
        if not candidate.exists():
            raise ConfigError(f"{ENV_PREFIX}CONFIG={env_path} does not exist")
        return candidate

    user_path = default_config_path()
    if user_path.exists():
        return user_path
    return None


def load_config(path: Optional[Path] = None, overrides: Optional[dict] = None) -> StackConfig:
    """Build a StackConfig from file, environment and CLI overrides."""
    known = {f.name for f in fields(StackConfig)}
    values: dict[str, Any] = {}

    config_file = find_config_file(path)
    if config_file is not None:
        file_values = _parse_yaml(config_file)
        unknown = sorted(set(file_values) - known)
        if unknown:
            raise ConfigError(f"Unknown keys in {config_file}: {', '.join(unknown)}")
        values.update(file_values)

    values.update(_env_values())
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return replace(StackConfig(), **values)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
