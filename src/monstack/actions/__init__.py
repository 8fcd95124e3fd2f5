"""Reusable stack actions."""

from monstack.actions.kube import (
    ApplyManifestAction,
    DashboardConfigMapAction,
    DeleteResourceAction,
    WaitForRolloutAction,
)
from monstack.actions.listing import ShowResourcesAction
from monstack.actions.preflight import CheckPrerequisitesAction, ConfirmAction

__all__ = [
    'ApplyManifestAction',
    'DashboardConfigMapAction',
    'DeleteResourceAction',
    'WaitForRolloutAction',
    'ShowResourcesAction',
    'CheckPrerequisitesAction',
    'ConfirmAction',
]
