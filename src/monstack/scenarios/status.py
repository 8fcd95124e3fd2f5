"""Report what is running in the monitoring namespace (read-only)."""

from monstack.actions import CheckPrerequisitesAction, ShowResourcesAction
from monstack.config import StackConfig
from monstack.scenarios import register_scenario


@register_scenario
class Status:
    """Best-effort listing of pods, services, deployments and daemonsets."""

    name = 'status'
    description = 'Show monitoring pods, services, deployments and daemonsets'

    def get_phases(self, config: StackConfig) -> list[tuple[str, object, str]]:
        """Return phases for status."""
        ns = config.namespace.capitalize()
        return [
            ('preflight', CheckPrerequisitesAction(name='preflight'),
             'Checking prerequisites...'),
            ('pods', ShowResourcesAction(
                name='pods',
                kind='pods',
                missing_message="Namespace '{namespace}' not found.",
            ), f'=== {ns} Namespace Pods ==='),
            ('services', ShowResourcesAction(name='services', kind='services'),
             f'=== {ns} Services ==='),
            ('deployments', ShowResourcesAction(name='deployments', kind='deployments'),
             f'=== {ns} Deployments ==='),
            ('daemonsets', ShowResourcesAction(name='daemonsets', kind='daemonsets'),
             f'=== {ns} DaemonSets ==='),
        ]
