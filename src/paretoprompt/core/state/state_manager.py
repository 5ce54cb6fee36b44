"""Generation snapshot persistence."""

import json
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...models import Candidate, GenerationSummary, OptimizationConfig, Population, PromptTemplate

STATE_FILENAME = "state.json"


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


class OptimizerStateManager:
    """Persist and restore the generation-boundary snapshot of a run."""

    def __init__(self, config: OptimizationConfig):
        """Initialize state manager."""
        self.config = config

    def resolve_state_path(self, resume_from: str) -> Path:
        """Resolve resume state path."""
        path = Path(resume_from)
        if path.is_dir():
            return path / STATE_FILENAME
        return path

    def get_runs_dir(self) -> Optional[Path]:
        """Runs directory, or None when snapshots are disabled."""
        if self.config.runs_dir:
            return Path(self.config.runs_dir)
        return None

    def save_state(
        self,
        run_id: str,
        population: Population,
        templates: List[PromptTemplate],
        history: List[GenerationSummary],
        counters: Dict[str, Any],
        rng: random.Random
    ) -> Optional[Path]:
        """Write the snapshot for the population about to be evaluated."""
        runs_dir = self.get_runs_dir()
        if runs_dir is None:
            return None
        run_dir = runs_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        state_path = run_dir / STATE_FILENAME
        state = {
            "run_id": run_id,
            "generation": population.generation,
            "population": [candidate.model_dump() for candidate in population.members],
            "templates": [template.model_dump() for template in templates],
            "history": [summary.model_dump() for summary in history],
            "counters": counters,
            "rng_state": rng.getstate(),
        }
        tmp_path = state_path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(state), encoding="utf-8")
        tmp_path.replace(state_path)
        return state_path

    def load_state(self, state_path: Path) -> Dict[str, Any]:
        """Load a snapshot written by ``save_state``."""
        state = json.loads(state_path.read_text(encoding="utf-8"))
        members = tuple(Candidate.model_validate(item) for item in state["population"])
        return {
            "run_id": state["run_id"],
            "population": Population(generation=state["generation"], members=members),
            "templates": [PromptTemplate.model_validate(item) for item in state["templates"]],
            "history": [GenerationSummary.model_validate(item) for item in state["history"]],
            "counters": state["counters"],
            "rng_state": _freeze(state["rng_state"]),
        }
