"""Cluster mutation actions: apply, dashboard configmaps, rollout waits, deletes."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from monstack.cluster import ClusterClient, ClusterError
from monstack.common import ActionResult
from monstack.config import StackConfig

logger = logging.getLogger(__name__)


@dataclass
class ApplyManifestAction:
    """Apply a manifest file, or every manifest in a directory (path ending in '/')."""
    name: str
    path: str  # relative to manifest_dir
    fatal: bool = True

    def run(self, config: StackConfig, client: ClusterClient) -> ActionResult:
        """Apply the manifests into the stack namespace."""
        start = time.time()
        target = config.manifest_path(self.path)

        try:
            if self.path.endswith('/') or target.is_dir():
                applied = client.apply_directory(target, config.namespace)
            else:
                applied = client.apply_file(target, config.namespace)
        except ClusterError as e:
            return ActionResult(
                success=False,
                message=f"Apply of {self.path} failed: {e}",
                duration=time.time() - start
            )

        for ident in applied:
            logger.info(f"  {ident} serverside-applied")

        return ActionResult(
            success=True,
            message=f"Applied {len(applied)} object(s) from {self.path}",
            duration=time.time() - start
        )


@dataclass
class DashboardConfigMapAction:
    """Render a ConfigMap from dashboard files and apply it (replace semantics)."""
    name: str
    configmap: str
    files: tuple[str, ...]  # relative to manifest_dir
    fatal: bool = True

    def run(self, config: StackConfig, client: ClusterClient) -> ActionResult:
        """Create or replace the dashboard ConfigMap."""
        start = time.time()
        paths = [config.manifest_path(f) for f in self.files]

        try:
            ident = client.apply_configmap_from_files(self.configmap, config.namespace, paths)
        except ClusterError as e:
            return ActionResult(
                success=False,
                message=f"ConfigMap {self.configmap} failed: {e}",
                duration=time.time() - start
            )

        logger.info(f"  {ident} serverside-applied")
        return ActionResult(
            success=True,
            message=f"ConfigMap {self.configmap} applied",
            duration=time.time() - start
        )


@dataclass
class WaitForRolloutAction:
    """Wait for a workload rollout. Not fatal: slow pods must not fail a deploy."""
    name: str
    workload: str
    kind: str = 'deployment'
    timeout: Optional[int] = None  # defaults to config.rollout_timeout
    fatal: bool = False

    def run(self, config: StackConfig, client: ClusterClient) -> ActionResult:
        """Poll rollout status until complete or timed out."""
        start = time.time()
        timeout = self.timeout or config.rollout_timeout
        target = f'{self.kind}/{self.workload}'

        try:
            done = client.wait_for_rollout(self.kind, self.workload, config.namespace, timeout)
        except ClusterError as e:
            return ActionResult(
                success=False,
                message=f"Rollout status of {target} unavailable: {e}",
                duration=time.time() - start
            )

        if not done:
            return ActionResult(
                success=False,
                message=f"Rollout of {target} not complete after {timeout}s",
                duration=time.time() - start
            )

        logger.info(f'  {self.kind} "{self.workload}" successfully rolled out')
        return ActionResult(
            success=True,
            message=f"{target} rolled out",
            duration=time.time() - start
        )


@dataclass
class DeleteResourceAction:
    """Delete objects by name; an absent object counts as deleted."""
    name: str
    kind: str
    names: tuple[str, ...]
    wait: bool = False  # block until gone, bounded by config.delete_timeout
    fatal: bool = True

    def run(self, config: StackConfig, client: ClusterClient) -> ActionResult:
        """Delete each named object."""
        start = time.time()
        deleted = []

        for obj_name in self.names:
            try:
                existed = client.delete(self.kind, obj_name)
            except ClusterError as e:
                return ActionResult(
                    success=False,
                    message=str(e),
                    duration=time.time() - start
                )

            if not existed:
                logger.debug(f'{self.kind} "{obj_name}" not found, skipping')
                continue

            logger.info(f'  {self.kind} "{obj_name}" deleted')
            deleted.append(obj_name)

            if self.wait:
                try:
                    gone = client.wait_for_deletion(self.kind, obj_name, config.delete_timeout)
                except ClusterError as e:
                    logger.warning(f"Cannot confirm deletion of {self.kind}/{obj_name}: {e}")
                    continue
                if not gone:
                    logger.warning(
                        f"{self.kind}/{obj_name} still terminating after {config.delete_timeout}s; "
                        "deletion continues in the background"
                    )

        return ActionResult(
            success=True,
            message=f"Deleted {len(deleted)} {self.kind}(s)" if deleted else f"No {self.kind} to delete",
            duration=time.time() - start
        )
