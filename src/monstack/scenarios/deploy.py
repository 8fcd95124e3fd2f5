"""Deploy the monitoring stack.

Applies namespace, RBAC and every component in dependency order, materializes
the Grafana dashboard ConfigMaps from their JSON files, then waits for the
stateful workloads to roll out. Every apply is server-side and idempotent, so
re-running converges instead of duplicating.
"""

import logging
import time
from dataclasses import dataclass

from monstack.actions import (
    ApplyManifestAction,
    CheckPrerequisitesAction,
    DashboardConfigMapAction,
    WaitForRolloutAction,
)
from monstack.cluster import ClusterClient
from monstack.common import ActionResult
from monstack.config import ACCESS_ENDPOINTS, DASHBOARD_CONFIGMAPS, ROLLOUT_DEPLOYMENTS, StackConfig
from monstack.scenarios import register_scenario

logger = logging.getLogger(__name__)


@dataclass
class AccessSummaryAction:
    """Print where the deployed UIs can be reached."""
    name: str
    announce: bool = False
    fatal: bool = False

    def run(self, config: StackConfig, _client: ClusterClient) -> ActionResult:
        start = time.time()
        ns = config.namespace

        logger.info("============================================")
        logger.info("  Monitoring Stack Deployed Successfully")
        logger.info("============================================")
        logger.info("")
        logger.info("Access URLs (NodePort):")
        for label, _service, node_port, _forward, note in ACCESS_ENDPOINTS:
            line = f"  {label + ':':<14} http://<node-ip>:{node_port}"
            logger.info(f"{line}  {note}" if note else line)
        logger.info("")
        logger.info("Port-forward alternative:")
        for _label, service, _node_port, forward, _note in ACCESS_ENDPOINTS:
            logger.info(f"  kubectl -n {ns} port-forward svc/{service} {forward}")
        logger.info("")

        return ActionResult(success=True, message='summary printed', duration=time.time() - start)


@register_scenario
class Deploy:
    """Deploy Prometheus, Grafana, Alertmanager, node-exporter and kube-state-metrics."""

    name = 'deploy'
    description = 'Deploy the monitoring stack (idempotent)'

    def get_phases(self, config: StackConfig) -> list[tuple[str, object, str]]:
        """Return phases for deploy."""
        phases: list[tuple[str, object, str]] = [
            ('preflight', CheckPrerequisitesAction(name='preflight'),
             'Checking prerequisites...'),
            ('namespace', ApplyManifestAction(name='namespace', path='namespace/namespace.yaml'),
             f'Creating {config.namespace} namespace...'),
            ('rbac', ApplyManifestAction(name='rbac', path='rbac/'),
             'Applying RBAC resources...'),
            ('kube_state_metrics', ApplyManifestAction(name='kube-state-metrics', path='kube-state-metrics/'),
             'Deploying kube-state-metrics...'),
            ('node_exporter', ApplyManifestAction(name='node-exporter', path='node-exporter/'),
             'Deploying node-exporter...'),
            ('prometheus', ApplyManifestAction(name='prometheus', path='prometheus/'),
             'Deploying Prometheus...'),
            ('alertmanager', ApplyManifestAction(name='alertmanager', path='alertmanager/'),
             'Deploying Alertmanager...'),
            ('grafana_provisioning', ApplyManifestAction(name='grafana-provisioning', path='grafana/provisioning/'),
             'Deploying Grafana provisioning configs...'),
        ]

        for configmap, dashboard in DASHBOARD_CONFIGMAPS:
            phases.append((
                f'dashboard_{configmap.rsplit("-", 1)[-1]}',
                DashboardConfigMapAction(name=configmap, configmap=configmap, files=(dashboard,)),
                f'Creating Grafana dashboard ConfigMap {configmap}...',
            ))

        phases.append(
            ('grafana', ApplyManifestAction(name='grafana', path='grafana/grafana-deployment.yaml'),
             'Deploying Grafana...'),
        )

        for i, deployment in enumerate(ROLLOUT_DEPLOYMENTS):
            description = f'Waiting for deployment/{deployment} to become ready...'
            if i == 0:
                description = 'Deployment complete! Waiting for pods to become ready...'
            phases.append((
                f'rollout_{deployment}',
                WaitForRolloutAction(name=f'rollout-{deployment}', workload=deployment),
                description,
            ))

        phases.append(('summary', AccessSummaryAction(name='summary'), 'Print access summary'))
        return phases
