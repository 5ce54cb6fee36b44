"""Offspring lineage logging."""

import json
from pathlib import Path
from typing import Optional

from ...models import Candidate, EditKind, Insight

MUTATION_LOG_FILENAME = "mutation_log.jsonl"


class MutationLogger:
    """Append one JSON line per offspring when a runs directory is configured."""

    def __init__(self, runs_dir: Optional[Path]):
        """Initialize mutation logger."""
        self.runs_dir = runs_dir
        self.run_id: Optional[str] = None

    def set_run_id(self, run_id: str) -> None:
        """Set current run id."""
        self.run_id = run_id

    def append(
        self,
        candidate: Candidate,
        operator: str,
        edit_kind: Optional[EditKind],
        insight: Optional[Insight]
    ) -> None:
        """Append mutation log entry."""
        if self.runs_dir is None:
            return
        run_dir = self.runs_dir / (self.run_id or "run")
        run_dir.mkdir(parents=True, exist_ok=True)
        payload = {
            "run_id": self.run_id,
            "generation": candidate.generation,
            "candidate_id": candidate.id,
            "lineage": list(candidate.lineage),
            "operator": operator,
            "edit_kind": edit_kind.value if edit_kind else None,
            "insight_pattern": insight.target_failure_pattern if insight else None,
            "insight_confidence": insight.confidence if insight else None,
        }
        with open(run_dir / MUTATION_LOG_FILENAME, "a", encoding="utf-8") as log_file:
            log_file.write(json.dumps(payload, ensure_ascii=False) + "\n")
