"""Read-only status actions."""

import logging
import time
from dataclasses import dataclass

from monstack.cluster import COLUMNS, ClusterClient, ClusterError, NotFoundError
from monstack.common import ActionResult, build_table, print_table
from monstack.config import StackConfig

logger = logging.getLogger(__name__)


@dataclass
class ShowResourcesAction:
    """Print a table of one resource type in the stack namespace.

    Never fails: a missing namespace or resource type becomes a warning so the
    remaining sections still print.
    """
    name: str
    kind: str
    missing_message: str = ''  # may reference {namespace}
    fatal: bool = False

    def run(self, config: StackConfig, client: ClusterClient) -> ActionResult:
        start = time.time()

        try:
            rows = client.get(self.kind, config.namespace)
        except NotFoundError as e:
            message = self.missing_message.format(namespace=config.namespace) or str(e)
            logger.warning(message)
            return ActionResult(success=True, message=message, duration=time.time() - start)
        except ClusterError as e:
            logger.warning(str(e))
            return ActionResult(success=True, message=str(e), duration=time.time() - start)

        if rows:
            print_table(build_table(COLUMNS[self.kind], rows))
        else:
            print(f"No resources found in {config.namespace} namespace.")

        return ActionResult(
            success=True,
            message=f"{len(rows)} {self.kind}",
            duration=time.time() - start
        )
