"""
Shared utilities for lesson generation.

- llm_client.py: OpenAI completion client with retry logic and usage tracking
- logging_config.py: Structured JSON logging and stage logging
- progress_tracker.py: Phase weights and weighted progress calculation
- quality_metrics.py: Per-section quality metrics
"""

__all__ = [
    "llm_client",
    "logging_config",
    "progress_tracker",
    "quality_metrics",
]
