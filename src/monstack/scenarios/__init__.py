"""Scenario definitions and orchestration.

A scenario is an ordered list of (phase_name, action, description) tuples.
Each action declares whether its failure is fatal (attribute `fatal`,
default True). The orchestrator runs phases strictly in order:

- fatal failure: abort, no rollback, run fails
- non-fatal failure: warn and continue, run outcome unchanged
- result.halt: stop cleanly, run succeeds
"""

import logging
import time
from typing import Any, Optional, Protocol, runtime_checkable

from monstack.cluster import ClusterClient
from monstack.config import StackConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class Scenario(Protocol):
    """Protocol for scenario definitions.

    Class attributes:
        name: Scenario identifier, also the CLI subcommand (e.g., 'deploy')
        description: Human-readable description
        requires_confirmation: If True, the scenario prompts before destroying (default: False)
        completion_message: Logged after all phases succeed (default: None)
    """
    name: str
    description: str

    def get_phases(self, config: StackConfig) -> list[tuple[str, Any, str]]:
        """Return list of (phase_name, action, description) tuples."""
        ...


class Orchestrator:
    """Coordinates scenario execution."""

    def __init__(
        self,
        scenario: Scenario,
        config: StackConfig,
        client: Optional[ClusterClient] = None,
        dry_run: bool = False
    ):
        self.scenario = scenario
        self.config = config
        self.client = client
        self.dry_run = dry_run

    def preview(self) -> bool:
        """Show what would be executed without running. Returns True."""
        phases = self.scenario.get_phases(self.config)

        print("")
        print("═══════════════════════════════════════════════════════════════")
        print(f"  DRY-RUN: {self.scenario.name}")
        print(f"  Namespace: {self.config.namespace}")
        print(f"  Manifests: {self.config.manifest_dir}")
        print("═══════════════════════════════════════════════════════════════")
        print("")

        print("Phases to execute:")
        for phase_name, action, description in phases:
            fatal = getattr(action, 'fatal', True)
            print(f"  [{'FATAL' if fatal else 'WARN '}] {phase_name}: {description}")
            print(f"          Action: {type(action).__name__}")

            # Show action details if available
            if hasattr(action, 'path'):
                print(f"          Path: {self.config.manifest_path(action.path)}")
            if hasattr(action, 'configmap'):
                print(f"          ConfigMap: {action.configmap}")
            if hasattr(action, 'workload'):
                print(f"          Workload: {action.kind}/{action.workload}")
            if hasattr(action, 'names'):
                print(f"          Delete: {action.kind} {', '.join(action.names)}")
            print("")

        print("═══════════════════════════════════════════════════════════════")
        print(f"  Summary: {len(phases)} phases")
        print("  Mode: DRY-RUN (no changes made)")
        print("═══════════════════════════════════════════════════════════════")
        print("")
        print("Remove --dry-run to execute.")
        print("")

        return True

    def run(self) -> bool:
        """Run all phases. Returns True unless a fatal phase failed."""
        if self.dry_run:
            return self.preview()
        if self.client is None:
            raise ValueError("Orchestrator needs a cluster client unless dry_run is set")

        logger.debug(f"Starting scenario '{self.scenario.name}' in namespace {self.config.namespace}")
        phases = self.scenario.get_phases(self.config)
        start_time = time.time()

        for phase_name, action, description in phases:
            if getattr(action, 'announce', True):
                logger.info(description)
            logger.debug(f"Running phase: {phase_name}")

            try:
                result = action.run(self.config, self.client)
            except Exception as e:
                logger.exception(f"Phase {phase_name} raised exception: {e}")
                return False

            if result.success:
                logger.debug(f"Phase {phase_name} passed: {result.message} ({result.duration:.1f}s)")
                if result.halt:
                    logger.debug(f"Scenario halted by phase {phase_name}")
                    return True
                continue

            if getattr(action, 'fatal', True):
                logger.error(result.message)
                return False
            logger.warning(result.message)

        logger.debug(f"Scenario completed in {time.time() - start_time:.1f}s")
        if message := getattr(self.scenario, 'completion_message', None):
            logger.info(message)
        return True


# Registry of available scenarios
_scenarios: dict[str, type[Scenario]] = {}


def register_scenario(cls: type[Scenario]) -> type[Scenario]:
    """Decorator to register a scenario class."""
    _scenarios[cls.name] = cls
    return cls


def get_scenario(name: str) -> Scenario:
    """Get a scenario instance by name."""
    if name not in _scenarios:
        available = list(_scenarios.keys())
        raise ValueError(f"Unknown scenario: {name}. Available: {available}")
    return _scenarios[name]()


def list_scenarios() -> list[str]:
    """List scenario names in registration order."""
    return list(_scenarios.keys())


# Import scenarios to trigger registration
from monstack.scenarios import deploy  # noqa: E402, F401
from monstack.scenarios import teardown  # noqa: E402, F401
from monstack.scenarios import status  # noqa: E402, F401
