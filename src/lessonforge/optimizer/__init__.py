"""Prompt and token optimization."""

from lessonforge.optimizer.prompt_optimizer import (
    OptimizedPrompt,
    PromptBatch,
    PromptOptimizer,
    PromptRequest,
    estimate_tokens,
)

__all__ = [
    "OptimizedPrompt",
    "PromptBatch",
    "PromptOptimizer",
    "PromptRequest",
    "estimate_tokens",
]
