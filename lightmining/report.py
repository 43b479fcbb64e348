"""Console rendering of cycle results.

After every cycle the orchestrator hands its :class:`CycleReport` to
:func:`print_cycle_report`, which prints one rich table row per wallet.
"""

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from lightmining.orchestrator import CycleReport, WalletOutcome
from lightmining.utils import format_timestamp

OUTCOME_COLORS = {
    WalletOutcome.ACTIVATED: "green",
    WalletOutcome.NOT_ELIGIBLE: "yellow",
    WalletOutcome.NOT_BOUND: "yellow",
}


def build_cycle_table(report: CycleReport) -> Table:
    """Build a table of wallet outcomes for one cycle."""
    table = Table(
        title=f"Mining Cycle @ {format_timestamp(report.started_at)}",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Wallet", style="cyan", no_wrap=True)
    table.add_column("Outcome", justify="center")
    table.add_column("Next Mining", justify="right")
    table.add_column("Tx Hash", overflow="fold")

    for entry in report.reports:
        color = OUTCOME_COLORS.get(entry.outcome, "red")
        next_time = (
            format_timestamp(entry.next_eligible_time)
            if entry.next_eligible_time is not None else "-"
        )
        table.add_row(
            entry.address,
            f"[{color}]{entry.outcome.value}[/{color}]",
            next_time,
            entry.tx_hash or "-",
        )

    if not report.reports:
        table.add_row("No wallets processed", "-", "-", "-")
    return table


def print_cycle_report(
    report: CycleReport, console: Optional[Console] = None,
) -> None:
    (console or Console()).print(build_cycle_table(report))
