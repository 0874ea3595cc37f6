"""Quality metrics tracker for lesson generation runs.

Records one entry per generated section (validation score, attempts, timing,
issue and warning counts) and aggregates them into a lesson quality report.
"""

import logging
import time
from typing import Dict, List, Optional

from lessonforge.models.quality import LessonQualityReport, SectionMetrics

logger = logging.getLogger(__name__)


class QualityMetricsTracker:
    """Track per-section quality metrics for one lesson.

    A tracker belongs to a single generation run; call ``reset`` before
    reusing it for another lesson.
    """

    def __init__(self):
        self.metrics: Dict[str, SectionMetrics] = {}
        self.start_time = time.time()

    def record_section(
        self,
        section_name: str,
        validation_score: int,
        attempt_count: int,
        generation_time_ms: float,
        issue_count: int,
        warning_count: int,
        used_fallback: bool = False,
    ) -> SectionMetrics:
        """Record metrics for a section, replacing any earlier entry.

        Args:
            section_name: Section name
            validation_score: Validation score (0-100)
            attempt_count: Number of completion attempts made
            generation_time_ms: Wall time spent on the section
            issue_count: Number of blocking issues found
            warning_count: Number of advisory warnings found
            used_fallback: Whether fallback content was returned

        Returns:
            The stored SectionMetrics
        """
        entry = SectionMetrics(
            section_name=section_name,
            validation_score=max(0, min(100, validation_score)),
            attempt_count=attempt_count,
            generation_time_ms=round(generation_time_ms, 2),
            issue_count=issue_count,
            warning_count=warning_count,
            regenerated=attempt_count > 1,
            used_fallback=used_fallback,
        )
        self.metrics[section_name] = entry

        logger.info(
            f"Quality metrics for {section_name}: score={entry.validation_score}, "
            f"attempts={attempt_count}, time={entry.generation_time_ms}ms, "
            f"issues={issue_count}, warnings={warning_count}, fallback={used_fallback}"
        )
        return entry

    def get_section_metrics(self, section_name: str) -> Optional[SectionMetrics]:
        """Get metrics for a specific section."""
        return self.metrics.get(section_name)

    def get_all_metrics(self) -> List[SectionMetrics]:
        """Get all section metrics in recording order."""
        return list(self.metrics.values())

    def calculate_overall_score(self) -> int:
        """Mean validation score across sections, 0 when nothing was recorded."""
        sections = self.get_all_metrics()
        if not sections:
            return 0
        total = sum(section.validation_score for section in sections)
        return int(total / len(sections) + 0.5)

    def get_total_regenerations(self) -> int:
        """Number of sections that needed more than one attempt."""
        return sum(1 for section in self.get_all_metrics() if section.regenerated)

    def get_quality_report(self) -> LessonQualityReport:
        """Build the complete lesson quality report."""
        return LessonQualityReport(
            overall_score=self.calculate_overall_score(),
            sections=self.get_all_metrics(),
            total_generation_time_ms=round((time.time() - self.start_time) * 1000, 2),
            total_regenerations=self.get_total_regenerations(),
        )

    def log_summary(self) -> None:
        """Log a human readable quality summary."""
        report = self.get_quality_report()

        logger.info("=" * 60)
        logger.info("LESSON QUALITY REPORT")
        logger.info("=" * 60)
        logger.info(f"Overall Quality Score: {report.overall_score}/100")
        logger.info(f"Total Generation Time: {report.total_generation_time_ms / 1000:.2f}s")
        logger.info(f"Total Regenerations: {report.total_regenerations}")
        for section in report.sections:
            status = "fallback" if section.used_fallback else "ok"
            logger.info(
                f"  [{status}] {section.section_name}: {section.validation_score}/100 "
                f"({section.attempt_count} attempts, {section.issue_count} issues, "
                f"{section.warning_count} warnings)"
            )
        logger.info("=" * 60)

    def reset(self) -> None:
        """Clear metrics for a new lesson."""
        self.metrics.clear()
        self.start_time = time.time()
