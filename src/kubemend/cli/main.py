#!/usr/bin/env python3
"""
KUBEMEND CLI - Release Repair
-----------------------------
Command-line front end for the repair engine:

    kubemend repair NAME [--dry-run]

Prints one unified diff per patched object followed by a status line:

    release "NAME" repaired
    release "NAME" already up-to-date

prefixed with 'DRY RUN: ' when --dry-run is set. Any failure prints
'Error: <message>' and exits with status 1.

Author: KubeMend Team
Date: 2026-01-16
"""

import argparse
import logging
import sys
from typing import Callable, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from kubemend.cli.formatter import KubeFormatter
from kubemend.core.config import RepairConfig
from kubemend.core.engine import RepairAction
from kubemend.core.errors import KubeMendError, RepairIncompleteError
from kubemend.core.models import status_line
from kubemend.core.reconciler import DiffSink

__version__ = "0.1.0"

logger = logging.getLogger("kubemend.cli")

ActionFactory = Callable[[RepairConfig, DiffSink], RepairAction]


def build_cluster_action(config: RepairConfig, on_diff: DiffSink) -> RepairAction:
    """Wires the live-cluster collaborators for a repair run."""
    from kubemend.cluster.base import ClusterManifestBuilder
    from kubemend.cluster.kubernetes import KubernetesCluster, load_api_client
    from kubemend.patching.catalog import MergeStrategyCatalog
    from kubemend.storage.helm import open_release_store

    api_client = load_api_client(config.kubeconfig, config.kube_context)
    cluster = KubernetesCluster(api_client, request_timeout=config.request_timeout)
    catalog = MergeStrategyCatalog.load(config.catalog_path, allow_unregistered=not config.strict_schema)

    return RepairAction(
        store=open_release_store(config.driver, config.namespace, api_client),
        builder=ClusterManifestBuilder(cluster),
        catalog=catalog,
        dry_run=config.dry_run,
        continue_on_error=config.continue_on_error,
        on_diff=on_diff,
    )


class KubeMendCLI:
    """
    CLI wrapper that translates user commands into RepairAction runs.
    """

    def __init__(self, action_factory: Optional[ActionFactory] = None,
                 console: Optional[Console] = None):
        self.action_factory = action_factory or build_cluster_action
        self.console = console or Console()
        self.parser = argparse.ArgumentParser(
            prog="kubemend",
            description="KubeMend - Repair Helm releases that drifted from their manifest",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self._setup_args()

    def _setup_args(self):
        self.parser.add_argument("-v", "--version", action="version", version=f"kubemend v{__version__}")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        repair_parser = subparsers.add_parser(
            "repair", help="Repair a release that has been modified outside of helm"
        )
        repair_parser.add_argument("name", metavar="NAME", help="Release name")
        repair_parser.add_argument("--dry-run", action="store_true", help="simulate a repair")
        repair_parser.add_argument("-n", "--namespace", help="Namespace of the release (env: HELM_NAMESPACE)")
        repair_parser.add_argument("--kubeconfig", help="Path to the kubeconfig file (env: KUBECONFIG)")
        repair_parser.add_argument("--kube-context", help="Kubeconfig context to use (env: HELM_KUBECONTEXT)")
        repair_parser.add_argument("--driver", help="Release storage: secret, configmap or memory (env: HELM_DRIVER)")
        repair_parser.add_argument("--catalog", dest="catalog_path", help="Custom merge strategy catalog (JSON)")
        repair_parser.add_argument("--strict-schema", action="store_true", default=None,
                                   help="Fail on kinds missing from the merge strategy catalog")
        repair_parser.add_argument("--continue-on-error", action="store_true", default=None,
                                   help="Attempt every object and report all failures at the end")
        repair_parser.add_argument("--request-timeout", type=float,
                                   help="Per-request timeout in seconds")
        repair_parser.add_argument("--summary", action="store_true", default=None,
                                   help="Print a per-object report table")
        repair_parser.add_argument("--no-color", dest="color", action="store_false", default=None,
                                   help="Disable coloured diffs")
        repair_parser.add_argument("--debug", action="store_true", default=None,
                                   help="Enable verbose output")

    def print_header(self, subtitle: str):
        self.console.print(Panel.fit(
            f"[bold cyan]KubeMend v{__version__}[/bold cyan]",
            title=f"[bold white]{subtitle}[/bold white]",
            border_style="cyan"
        ))

    def _configure_logging(self, config: RepairConfig):
        handler = RichHandler(console=Console(stderr=True), show_path=config.debug)
        logging.basicConfig(
            level=logging.DEBUG if config.debug else logging.WARNING,
            format="%(message)s",
            handlers=[handler],
            force=True,
        )

    def _config_from_args(self, args: argparse.Namespace) -> RepairConfig:
        return RepairConfig.from_env(
            namespace=args.namespace,
            driver=args.driver,
            kubeconfig=args.kubeconfig,
            kube_context=args.kube_context,
            catalog_path=args.catalog_path,
            request_timeout=args.request_timeout,
            dry_run=args.dry_run,
            continue_on_error=args.continue_on_error,
            strict_schema=args.strict_schema,
            summary=args.summary,
            color=args.color,
            debug=args.debug,
        )

    def _run_repair(self, args: argparse.Namespace) -> int:
        formatter = KubeFormatter(self.console)
        try:
            config = self._config_from_args(args)
            formatter.color = config.color
            self._configure_logging(config)

            action = self.action_factory(config, formatter.display_diff)
            outcome = action.run(args.name)
        except RepairIncompleteError as e:
            for failure in e.failures:
                formatter.print_error(str(failure))
            if config.summary:
                formatter.print_summary(e.outcome)
            return 1
        except KubeMendError as e:
            logger.debug("Repair failed", exc_info=True)
            formatter.print_error(str(e))
            return 1

        if config.summary:
            formatter.print_summary(outcome)
        formatter.print_status(status_line(outcome.release.name, outcome.repaired, dry_run=config.dry_run))
        return 0

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Primary routing entry point."""
        argv = sys.argv[1:] if argv is None else argv
        if not argv:
            self.print_header("Helm Release Repair")
            self.parser.print_help()
            return 0

        args = self.parser.parse_args(argv)
        if args.command == "repair":
            return self._run_repair(args)
        self.parser.print_help()
        return 1


def main():
    """Application entry point with interrupt handling."""
    console = Console()
    try:
        sys.exit(KubeMendCLI(console=console).run())
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
