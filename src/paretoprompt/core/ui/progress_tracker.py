"""Progress tracker for optimization runs using tqdm."""

from types import TracebackType
from typing import Optional, Type

from tqdm import tqdm

from ...models import GenerationSummary


class ProgressTracker:
    """Progress callback rendering one tqdm step per ranked generation."""

    def __init__(self, max_generations: int, primary_objective: str):
        """Initialize progress tracker."""
        self.max_generations = max_generations
        self.primary_objective = primary_objective
        self._pbar: Optional[tqdm] = None

    def start(self) -> None:
        """Start the progress bar."""
        self._pbar = tqdm(
            total=self.max_generations,
            desc="Genetic-Pareto",
            unit="gen",
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]",
            dynamic_ncols=True,
        )

    def close(self) -> None:
        """Close the progress bar."""
        if self._pbar:
            self._pbar.close()
            self._pbar = None

    def __enter__(self) -> "ProgressTracker":
        """Enter progress context."""
        self.start()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        """Exit progress context."""
        self.close()

    def __call__(self, summary: GenerationSummary) -> None:
        """Advance one generation and show its headline numbers."""
        if self._pbar is None:
            return
        best = summary.best.get(self.primary_objective)
        self._pbar.set_postfix({
            "gen": summary.generation,
            "best": "n/a" if best is None else f"{best:.4g}",
            "front0": summary.front0_size,
            "div": f"{summary.diversity:.2f}",
        })
        self._pbar.update(1)
