"""Pre-flight and operator-interaction actions."""

import logging
import re
import time
from dataclasses import dataclass

from monstack.cluster import ClusterClient, PrerequisiteError
from monstack.common import ActionResult
from monstack.config import StackConfig
from monstack.validation import check_prerequisites

logger = logging.getLogger(__name__)

AFFIRMATIVE = re.compile(r'^[Yy]$')


@dataclass
class CheckPrerequisitesAction:
    """Gate every scenario on a configured client and a reachable cluster."""
    name: str
    fatal: bool = True

    def run(self, _config: StackConfig, client: ClusterClient) -> ActionResult:
        start = time.time()
        try:
            identity = check_prerequisites(client)
        except PrerequisiteError as e:
            return ActionResult(success=False, message=str(e), duration=time.time() - start)
        return ActionResult(success=True, message=identity, duration=time.time() - start)


@dataclass
class ConfirmAction:
    """Ask the operator before a destructive step.

    Only a single 'y' or 'Y' confirms. Anything else halts the scenario
    without failing it.
    """
    name: str
    warning: str
    prompt: str = 'Are you sure? [y/N]: '
    assume_yes: bool = False
    announce: bool = False
    fatal: bool = True

    def run(self, _config: StackConfig, _client: ClusterClient) -> ActionResult:
        start = time.time()
        logger.warning(self.warning)

        if self.assume_yes:
            logger.info("Confirmation skipped (--yes)")
            return ActionResult(success=True, message='confirmed (--yes)', duration=time.time() - start)

        try:
            response = input(self.prompt)
        except EOFError:
            response = ''

        if not AFFIRMATIVE.match(response.strip()):
            logger.info("Aborted.")
            return ActionResult(success=True, message='declined', duration=time.time() - start, halt=True)

        return ActionResult(success=True, message='confirmed', duration=time.time() - start)
