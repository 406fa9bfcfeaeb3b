# src/kubemend/cli/formatter.py
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from kubemend.core.models import ObjectAction, ObjectRef, RepairOutcome


class KubeFormatter:
    """
    KubeFormatter: the visual side of the CLI.
    Responsible for rendering repair diffs and the optional summary table.
    """

    def __init__(self, console: Console, color: bool = True):
        self.console = console
        self.color = color

    def display_diff(self, ref: ObjectRef, diff_text: str):
        """
        Writes one unified diff block. Colour is only added on a terminal;
        piped output stays a plain unified diff.
        """
        if not diff_text:
            return

        if self.color and self.console.is_terminal:
            syntax = Syntax(diff_text.rstrip("\n"), "diff", theme="monokai", background_color="default")
            self.console.print(syntax)
            self.console.print()
        else:
            self.console.print(diff_text, markup=False, emoji=False, highlight=False, soft_wrap=True)

    def print_status(self, line: str):
        self.console.print(line, markup=False, emoji=False, highlight=False, soft_wrap=True)

    def print_error(self, message: str):
        self.console.print(f"Error: {message}", markup=False, emoji=False, highlight=False, soft_wrap=True)

    def print_summary(self, outcome: RepairOutcome):
        """
        Builds the per-object table shown with --summary.
        """
        title = "KubeMend Repair Report" + (" (dry run)" if outcome.dry_run else "")
        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("Object", style="cyan")
        table.add_column("Kind")
        table.add_column("Action", justify="center")

        colors = {
            ObjectAction.CREATED: "green",
            ObjectAction.PATCHED: "yellow",
            ObjectAction.UNCHANGED: "dim",
        }
        for ref, action in outcome.actions:
            scope = f"{ref.namespace}/" if ref.namespace else ""
            color = colors[action]
            table.add_row(f"{scope}{ref.name}", ref.kind, f"[{color}]{action.value}[/{color}]")

        self.console.print(table)
