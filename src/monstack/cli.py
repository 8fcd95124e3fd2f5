#!/usr/bin/env python3
"""CLI entry point for monstack.

Usage: monstack {deploy|teardown|status} [options]

- deploy:   apply the monitoring stack and wait for it to roll out
- teardown: delete the monitoring namespace and cluster-level RBAC
- status:   list pods, services, deployments and daemonsets

Exit codes: 0 success (including a declined teardown and --dry-run),
1 unknown command, unreachable cluster or failed phase,
2 invalid options or configuration, 130 interrupted.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from monstack import __version__
from monstack.cluster import ClusterClient, KubernetesClusterClient
from monstack.config import ConfigError, StackConfig, load_config
from monstack.logging_config import configure_logging
from monstack.scenarios import Orchestrator, get_scenario, list_scenarios

logger = logging.getLogger(__name__)


def print_usage():
    """Print top-level usage showing subcommands."""
    commands = list_scenarios()
    print(f"Usage: monstack {{{'|'.join(commands)}}} [options]")
    print()
    print("Commands:")
    for name in commands:
        print(f"  {name:<10} {get_scenario(name).description}")
    print()
    print("Run 'monstack <command> --help' for command-specific options.")


def build_parser(command: str) -> argparse.ArgumentParser:
    """Build the option parser for one subcommand."""
    scenario = get_scenario(command)
    parser = argparse.ArgumentParser(
        prog=f'monstack {command}',
        description=scenario.description
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Config file (default: $MONSTACK_CONFIG or ~/.config/monstack/config.yaml)'
    )
    parser.add_argument(
        '--manifest-dir', '-m',
        type=Path,
        help='Root of the manifest tree (namespace/, rbac/, prometheus/, grafana/, ...)'
    )
    parser.add_argument(
        '--kubeconfig',
        type=Path,
        help='Kubeconfig file (default: $KUBECONFIG or ~/.kube/config)'
    )
    parser.add_argument(
        '--context',
        help='Kubeconfig context to use'
    )
    parser.add_argument(
        '--namespace', '-n',
        help='Target namespace (default: monitoring)'
    )
    parser.add_argument(
        '--timeout', '-t',
        type=int,
        help='Rollout wait per workload in seconds (default: 120)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show the phases that would run without contacting the cluster'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored output'
    )
    if getattr(scenario, 'requires_confirmation', False):
        parser.add_argument(
            '--yes', '-y',
            action='store_true',
            help='Skip the confirmation prompt'
        )
    return parser


def create_client(config: StackConfig) -> ClusterClient:
    """Create the cluster client for a run."""
    return KubernetesClusterClient(
        kubeconfig=config.kubeconfig,
        context=config.context,
        field_manager=config.field_manager,
        poll_interval=config.poll_interval,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point: dispatch a subcommand to its scenario."""
    argv = sys.argv[1:] if argv is None else argv

    if not argv or argv[0] not in list_scenarios():
        if argv and argv[0] in ('-h', '--help'):
            print_usage()
            return 0
        if argv and argv[0] == '--version':
            print(f"monstack {__version__}")
            return 0
        if argv:
            print(f"Error: Unknown command '{argv[0]}'")
        print_usage()
        return 1

    command, rest = argv[0], argv[1:]
    args = build_parser(command).parse_args(rest)

    configure_logging(verbose=args.verbose, color=False if args.no_color else None)

    try:
        config = load_config(args.config, overrides={
            'manifest_dir': args.manifest_dir,
            'kubeconfig': args.kubeconfig,
            'context': args.context,
            'namespace': args.namespace,
            'rollout_timeout': args.timeout,
        })
    except ConfigError as e:
        logger.error(str(e))
        return 2

    scenario = get_scenario(command)
    if hasattr(scenario, 'assume_yes'):
        scenario.assume_yes = getattr(args, 'yes', False)

    client = None if args.dry_run else create_client(config)
    orchestrator = Orchestrator(
        scenario=scenario,
        config=config,
        client=client,
        dry_run=args.dry_run
    )

    try:
        success = orchestrator.run()
    except KeyboardInterrupt:
        print()
        logger.error("Interrupted.")
        return 130
    return 0 if success else 1


if __name__ == '__main__':
    sys.exit(main())
