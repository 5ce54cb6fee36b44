"""Optimization result builder."""

import time
from datetime import datetime
from typing import List, Optional

from loguru import logger
from rich.console import Console

from ...models import (
    Candidate,
    GenerationSummary,
    OptimizationConfig,
    OptimizationResult,
    ParetoFront,
    TerminationReason,
)
from ..selection import primary_sort_key

TEXT_PREVIEW_CHARS = 120


class ResultBuilder:
    """Build and print optimization results."""

    def __init__(self, config: OptimizationConfig, console: Console):
        """Initialize result builder."""
        self.config = config
        self.console = console

    def build(
        self,
        run_id: str,
        reason: TerminationReason,
        members: List[Candidate],
        ranking: Optional[ParetoFront],
        history: List[GenerationSummary],
        start_time: float
    ) -> OptimizationResult:
        """Build result from the last fully-ranked generation."""
        front0: List[Candidate] = []
        generation = None
        if ranking is not None:
            by_id = {c.id: c for c in members}
            front0 = sorted(
                (by_id[cid] for cid in ranking.front0),
                key=lambda c: (primary_sort_key(c, self.config.primary), ranking.sort_key(c.id)),
            )
            generation = history[-1].generation if history else None
        elapsed = time.time() - start_time
        return OptimizationResult(
            run_id=run_id,
            termination_reason=reason,
            generation=generation,
            front0=tuple(front0),
            history=list(history),
            started_at=datetime.fromtimestamp(start_time),
            finished_at=datetime.now(),
            duration_seconds=elapsed,
        )

    def log_result(self, result: OptimizationResult) -> None:
        """Log optimization result."""
        if result.has_result:
            logger.success(
                f"Optimization finished in {result.duration_seconds:.1f}s "
                f"({result.termination_reason.value})"
            )
        else:
            logger.warning(f"Optimization ended without a result ({result.termination_reason.value})")
        self._print_results(result)

    def _print_results(self, result: OptimizationResult) -> None:
        """Print optimization results."""
        self.console.print("\n[bold green]+----------------------------------------------+[/bold green]")
        self.console.print("[bold green]|       Genetic-Pareto Optimization Results    |[/bold green]")
        self.console.print("[bold green]+----------------------------------------------+[/bold green]\n")

        self.console.print(f"Run ID: [cyan]{result.run_id}[/cyan]")
        self.console.print(f"Duration: [cyan]{result.duration_seconds:.1f}s[/cyan]")
        self.console.print(f"Termination: [cyan]{result.termination_reason.value}[/cyan]")
        self.console.print(f"Generations: [cyan]{result.generations_completed}[/cyan]\n")

        if not result.has_result:
            self.console.print("[yellow]No ranked generation available.[/yellow]\n")
            return

        self.console.print(f"[bold]Front 0 ({len(result.front0)} candidates):[/bold]")
        for i, candidate in enumerate(result.front0, 1):
            preview = candidate.text.replace("\n", " ")[:TEXT_PREVIEW_CHARS]
            self.console.print(f"\n  [bold cyan][{i}][/bold cyan] {candidate.fitness}")
            self.console.print(f"      {preview}", markup=False)

        self.console.print()
