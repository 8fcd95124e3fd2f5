"""Tear down the monitoring stack.

Deleting the namespace cascades to every namespaced resource; the
cluster-scoped RBAC objects are removed by name afterwards. Absent objects are
not an error, so teardown can be re-run after a partial failure.
"""

from monstack.actions import CheckPrerequisitesAction, ConfirmAction, DeleteResourceAction
from monstack.config import CLUSTER_RBAC_NAMES, StackConfig
from monstack.scenarios import register_scenario


@register_scenario
class Teardown:
    """Delete the monitoring namespace and cluster-level RBAC."""

    name = 'teardown'
    description = 'Delete all monitoring resources (asks for confirmation)'
    requires_confirmation = True  # Destructive scenario
    completion_message = 'Teardown complete.'

    def __init__(self):
        self.assume_yes = False

    def get_phases(self, config: StackConfig) -> list[tuple[str, object, str]]:
        """Return phases for teardown."""
        return [
            ('preflight', CheckPrerequisitesAction(name='preflight'),
             'Checking prerequisites...'),

            ('confirm', ConfirmAction(
                name='confirm',
                warning=f'This will delete ALL {config.namespace} resources.',
                assume_yes=self.assume_yes,
            ), 'Confirm teardown'),

            ('namespace', DeleteResourceAction(
                name='delete-namespace',
                kind='namespace',
                names=(config.namespace,),
                wait=True,
            ), f'Deleting {config.namespace} namespace and all resources...'),

            ('cluster_rbac', DeleteResourceAction(
                name='delete-clusterroles',
                kind='clusterrole',
                names=CLUSTER_RBAC_NAMES,
            ), 'Deleting cluster-level RBAC...'),

            ('cluster_rbac_bindings', DeleteResourceAction(
                name='delete-clusterrolebindings',
                kind='clusterrolebinding',
                names=CLUSTER_RBAC_NAMES,
            ), 'Deleting cluster-level RBAC bindings...'),
        ]
