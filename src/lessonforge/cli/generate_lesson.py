"""CLI for generating a progressive language lesson from a source text.

The source text is analysed once into a shared context, then every section of
the lesson plan (warm-up, vocabulary, reading, comprehension, the lesson
type's extra section, wrap-up) is generated, validated and, when needed,
replaced by deterministic fallback content.

Usage:
    python -m lessonforge.cli.generate_lesson \\
        --source article.txt \\
        --lesson-type discussion \\
        --level B1 \\
        --output lesson.json

Args:
    --source: Text file with the lesson source text
    --lesson-type: discussion, grammar, pronunciation, travel or business
    --level: Target CEFR level (A1-C2)
    --language: Language being learned (default: English)
    --output: Write the lesson JSON here instead of stdout
    --sse: Print server-sent event frames while generating
    --dry-run: Print the prompts each section would send (calls, token estimates,
        batches) without calling the model
    --log-file: Also write logs to this file

Examples:
    # Travel lesson with streamed progress events
    python -m lessonforge.cli.generate_lesson \\
        --source travel.txt --lesson-type travel --level A2 --sse

    # Inspect prompts and batching only
    python -m lessonforge.cli.generate_lesson \\
        --source article.txt --lesson-type grammar --level B2 --dry-run
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from lessonforge import CEFR_LEVELS, LESSON_TYPES, config
from lessonforge.generators.context_builder import (
    ContextBuilder,
    contextual_title,
    detect_themes,
    extract_frequent_terms,
    fallback_summary,
)
from lessonforge.generators.lesson_runner import LessonRunner, build_section_plan, format_sse
from lessonforge.generators.section_generator import ProgressiveGenerator
from lessonforge.models.schema import SectionKind, SharedContext
from lessonforge.optimizer.prompt_optimizer import SECTION_STRATEGIES, PromptRequest, estimate_tokens
from lessonforge.utils.llm_client import LLMClient
from lessonforge.utils.logging_config import configure_logging
from lessonforge.utils.quality_metrics import QualityMetricsTracker

logger = logging.getLogger(__name__)


def build_dry_run_plan(source_text: str, lesson_type: str, level: str, language: str) -> dict:
    """Prompt plan for a lesson, built from a locally analysed context.

    The prompts are the ones the section generator would send for this
    context, one per completion call, assuming every call succeeds first
    time. The optimizer's compact rendition of each section is reported
    alongside for comparison.

    Args:
        source_text: Raw lesson source text
        lesson_type: Lesson type
        level: Target CEFR level
        language: Language being learned

    Returns:
        Dictionary with the context, per-section calls and prompts, token
        estimates and prompt batches
    """
    generator = ProgressiveGenerator(completion_service=None)
    optimizer = generator.optimizer
    context = SharedContext(
        key_vocabulary=extract_frequent_terms(source_text, config.MAX_KEY_VOCABULARY),
        main_themes=detect_themes(source_text) or ["general topic"],
        difficulty_level=level,
        content_summary=fallback_summary(source_text),
        source_text=source_text[:config.SOURCE_TEXT_LIMIT],
        lesson_type=lesson_type,
        target_language=language,
        lesson_title=contextual_title(source_text, lesson_type, level),
    )

    sections = []
    requests = []
    for request in build_section_plan(lesson_type):
        kind = SectionKind.from_name(request.name)
        prompts = generator.plan_prompts(request, context)
        sections.append({
            "section": kind.value,
            "strategy": SECTION_STRATEGIES[kind],
            "calls": len(prompts),
            "estimated_tokens": sum(estimate_tokens(p) for p in prompts),
            "optimized_estimated_tokens": optimizer.optimize_prompt(kind, context).estimated_tokens,
            "prompts": prompts,
        })
        requests.extend(PromptRequest(section=kind.value, content=p) for p in prompts)

    batches = optimizer.batch_prompts(requests)
    return {
        "context": context.model_dump(mode="json"),
        "sections": sections,
        "total_calls": len(requests),
        "total_estimated_tokens": sum(s["estimated_tokens"] for s in sections),
        "batches": [
            {"sections": batch.sections, "total_tokens": batch.total_tokens}
            for batch in batches
        ],
    }


def write_output(payload: dict, output: Path = None) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if output is None:
        print(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        f.write(text)
    logger.info(f"Saved lesson to: {output}")


def main():
    parser = argparse.ArgumentParser(
        description="Generate a progressive language lesson from a source text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Required arguments
    parser.add_argument(
        "--source",
        type=Path,
        required=True,
        help="Text file with the lesson source text",
    )
    parser.add_argument(
        "--lesson-type",
        required=True,
        choices=LESSON_TYPES,
        help="Lesson type selecting the extra section",
    )
    parser.add_argument(
        "--level",
        required=True,
        type=str.upper,
        choices=CEFR_LEVELS,
        help="Target CEFR level",
    )

    # Optional arguments
    parser.add_argument(
        "--language",
        default="English",
        help="Language being learned (default: English)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Output JSON file (default: stdout)",
    )
    parser.add_argument(
        "--sse",
        action="store_true",
        help="Print server-sent event frames instead of a single JSON document",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the prompt plan without calling the model",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write logs to this file",
    )

    args = parser.parse_args()

    configure_logging(
        level=config.LOG_LEVEL,
        log_file=args.log_file,
        json_format=config.LOG_FORMAT == "json",
    )

    if not args.source.exists():
        logger.error(f"Source file not found: {args.source}")
        sys.exit(1)

    source_text = args.source.read_text(encoding="utf-8")
    if not source_text.strip():
        logger.error(f"Source file is empty: {args.source}")
        sys.exit(1)

    logger.info("Starting lesson generation:")
    logger.info(f"  Source: {args.source} ({len(source_text)} characters)")
    logger.info(f"  Lesson type: {args.lesson_type}")
    logger.info(f"  Level: {args.level}")
    logger.info(f"  Language: {args.language}")

    if args.dry_run:
        logger.info("DRY RUN - no completions will be requested")
        write_output(
            build_dry_run_plan(source_text, args.lesson_type, args.level, args.language),
            args.output,
        )
        sys.exit(0)

    llm_client = LLMClient()
    generator = ProgressiveGenerator(llm_client, quality_tracker=QualityMetricsTracker())
    runner = LessonRunner(generator, ContextBuilder(llm_client))

    try:
        if args.sse:
            for event in runner.stream_events(source_text, args.lesson_type, args.level, args.language):
                sys.stdout.write(format_sse(event))
                sys.stdout.flush()
                if event["type"] == "complete" and args.output:
                    write_output(event["lesson"], args.output)
                elif event["type"] == "error":
                    sys.exit(1)
        else:
            lesson = runner.run(
                source_text,
                args.lesson_type,
                args.level,
                args.language,
                progress_callback=lambda update: logger.info(f"[{update.progress:3d}%] {update.step}"),
            )
            write_output(lesson.model_dump(mode="json"), args.output)

        usage = llm_client.get_usage_summary()
        logger.info("Token Usage:")
        logger.info(f"  Requests: {usage['requests']}")
        logger.info(f"  Prompt tokens: {usage['prompt_tokens']:,}")
        logger.info(f"  Completion tokens: {usage['completion_tokens']:,}")
        logger.info(f"  Estimated cost: ${usage['estimated_cost_usd']:.4f}")

    except Exception as e:
        logger.error(f"Lesson generation failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
