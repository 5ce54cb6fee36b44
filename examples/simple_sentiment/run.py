"""Minimal example: optimize a sentiment classification prompt against an LLM."""

from pathlib import Path

from paretoprompt import (
    GEPAOptimizer,
    LLMClient,
    LLMEvaluatorGateway,
    OptimizationConfig,
    ProgressTracker,
    load_dataset,
)
from paretoprompt.config import Settings

PROMPT_FILE = Path(__file__).parent / "prompt.txt"
DATASET_FILE = Path(__file__).parent / "dataset.jsonl"

settings = Settings(
    model="gpt-4o-mini",
)

config = OptimizationConfig.from_profile(
    "fast",
    seed=7,
    runs_dir=str(Path(__file__).parent / "runs"),
)

gateway = LLMEvaluatorGateway(LLMClient(settings))
dataset = load_dataset(DATASET_FILE)
baseline_prompt = PROMPT_FILE.read_text(encoding="utf-8").strip()

with ProgressTracker(config.max_generations, config.primary_objective) as tracker:
    optimizer = GEPAOptimizer(gateway, config, progress_callbacks=[tracker])
    result = optimizer.optimize(seeds=[baseline_prompt], suite=dataset)

best = result.front0[0]
print(f"\nBest accuracy: {best.fitness['accuracy']:.1%}")
print(f"\nOptimized prompt:\n{best.text}")
