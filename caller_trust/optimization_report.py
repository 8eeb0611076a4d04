"""
Optimization report writer for Caller Trust Lab.

Each optimization cycle is written as a Markdown summary and a JSON dump,
both named with the generation timestamp.
"""
import configparser
import json
import logging
import os
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, List, Optional

from settings import OPTIMIZER_SETTINGS

if TYPE_CHECKING:
    from caller_trust.trust_score_optimizer import OptimizationResult

logger = logging.getLogger(__name__)


def resolve_report_dir(report_dir: Optional[str] = None, config_path: Optional[str] = None) -> str:
    """Explicit argument, else [Reporting] report_dir from config.ini, else the settings default."""
    if report_dir:
        return report_dir
    default_dir = OPTIMIZER_SETTINGS['DEFAULT_REPORT_DIR']
    config_path = config_path or os.path.join(os.path.dirname(__file__), '..', 'config.ini')
    if not os.path.exists(config_path):
        return default_dir

    config = configparser.ConfigParser()
    try:
        config.read(config_path)
        configured = config.get('Reporting', 'report_dir', fallback=default_dir)
    except configparser.Error as e:
        logger.warning(f"Error reading report settings from {config_path}: {e}. Using default: {default_dir}")
        return default_dir
    return configured.strip() or default_dir


def report_timestamp(now: Optional[datetime] = None) -> str:
    """ISO timestamp usable in file names."""
    now = now or datetime.now(timezone.utc)
    return now.isoformat().replace(':', '-').replace('.', '-')


def build_markdown_report(result: 'OptimizationResult', generated_at: Optional[datetime] = None) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    accuracy = result.accuracy

    lines: List[str] = [
        "# Trust Score Optimization Report",
        f"Generated: {generated_at.isoformat()}",
        "",
        "## Accuracy Metrics",
        f"- **Mean Absolute Error:** {accuracy['mae']:.2f}",
        f"- **Root Mean Square Error:** {accuracy['rmse']:.2f}",
        f"- **Correlation:** {accuracy['correlation']:.3f}",
        f"- **Ranking Accuracy:** {accuracy['ranking_accuracy'] * 100:.1f}%",
        "",
        "## Individual Scores",
    ]

    if result.scores:
        lines.append("| Username | Archetype | Expected | Calculated | Difference | Win Rate | Avg Profit |")
        lines.append("|---|---|---|---|---|---|---|")
        for score in result.scores:
            metrics = score['metrics']
            lines.append(
                f"| {score['username']} | {score['archetype']} | {score['expected_score']:.0f} "
                f"| {score['calculated_score']:.1f} | {score['difference']:.1f} "
                f"| {metrics['win_rate'] * 100:.1f}% | {metrics['average_profit']:.2f}% |"
            )
    else:
        lines.append("No scores were calculated.")

    lines.append("")
    lines.append("## Optimization Suggestions")
    for suggestion in result.suggestions:
        lines.append(f"- {suggestion}")

    lines.append("")
    lines.append("## Parameters")
    for name, value in result.parameters.to_dict().items():
        lines.append(f"- `{name}`: {value}")
    return "\n".join(lines) + "\n"


def write_optimization_report(result: 'OptimizationResult', report_dir: Optional[str] = None,
                              generated_at: Optional[datetime] = None) -> Optional[Dict[str, str]]:
    """
    Writes `optimization-report-{ts}.md` and `optimization-data-{ts}.json`.

    Returns:
        Optional[Dict[str, str]]: {'markdown': path, 'json': path}, or None if writing failed.
    """
    report_dir = resolve_report_dir(report_dir)
    generated_at = generated_at or datetime.now(timezone.utc)
    timestamp = report_timestamp(generated_at)
    markdown_path = os.path.join(report_dir, f"optimization-report-{timestamp}.md")
    json_path = os.path.join(report_dir, f"optimization-data-{timestamp}.json")

    try:
        os.makedirs(report_dir, exist_ok=True)
        with open(markdown_path, 'w', encoding='utf-8') as f:
            f.write(build_markdown_report(result, generated_at))
        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump(dict(result.to_dict(), generated=generated_at.isoformat()), f, indent=2)
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Failed to write optimization report to {report_dir}: {e}", exc_info=True)
        return None

    logger.info(f"Optimization report saved to {markdown_path}")
    return {'markdown': markdown_path, 'json': json_path}
