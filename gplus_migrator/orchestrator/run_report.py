"""
Run report for the Google+ to Discourse migration.

Formats the console summary, writes the JSON summary file and prints
usermap.json suggestions for Google+ users that no longer map to anyone.
"""

import json
import logging
from typing import Any, Dict, List, Optional, TextIO, Tuple

from ..models import RunMode, RunStats

logger = logging.getLogger('gplus_migrator.orchestrator.run_report')


class RunReport:
    """Builds and outputs the report for one run."""

    def __init__(self, stats: RunStats, logger: Optional[logging.Logger] = None):
        self.stats = stats
        self.logger = logger or logging.getLogger('gplus_migrator.orchestrator.run_report')

    def generate_report(self, media_stats: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
        """
        Generate the report dictionary.

        Args:
            media_stats: Counters from the media cache

        Returns:
            Report with the summary counters, media counters and errors
        """
        stats = self.stats
        return {
            'mode': stats.mode.value,
            'dry_run': stats.dry_run,
            'cancelled': stats.cancelled,
            'summary': stats.to_summary(),
            'media': dict(media_stats or {}),
            'invalid_identities': [list(item) for item in stats.invalid_identities],
            'errors': list(stats.errors)
        }

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Report dictionary from ``generate_report``

        Returns:
            Formatted console string
        """
        sections = []
        summary = report.get('summary', {})

        sections.append("=" * 60)
        title = "UPDATE REPORT" if report.get('mode') == RunMode.UPDATE.value else "IMPORT REPORT"
        if report.get('dry_run'):
            title += " (DRY RUN)"
        sections.append(title)
        sections.append("=" * 60)
        sections.append("")

        sections.append("Topics / Posts:")
        sections.append("-" * 60)
        for outcome in ('created', 'updated', 'unchanged', 'skipped', 'blacklisted', 'failed'):
            topics_key = f"topics_{outcome}"
            if topics_key not in summary:
                continue
            sections.append(
                f"  {outcome.capitalize() + ':':<13}{summary[topics_key]} / {summary[f'posts_{outcome}']}"
            )
        sections.append("")

        if 'uploaded_bytes' in summary:
            sections.append(f"Uploaded {summary['uploaded_bytes']} bytes of image files")

        media = report.get('media', {})
        if media:
            sections.append(
                f"Media: {media.get('uploaded', 0)} uploaded, "
                f"{media.get('cache_hits', 0)} reused, "
                f"{media.get('missing', 0)} missing, "
                f"{media.get('failed', 0)} failed"
            )

        errors = report.get('errors', [])
        if errors:
            sections.append("")
            sections.append(f"Errors ({len(errors)}):")
            for error in errors[:10]:
                sections.append(f"  - {error.get('external_id')}: {error.get('error')}")
            if len(errors) > 10:
                sections.append(f"  ... and {len(errors) - 10} more")

        if report.get('cancelled'):
            sections.append("")
            sections.append("Run was cancelled before all posts were processed")

        sections.append("=" * 60)
        return "\n".join(sections)

    def write_summary(self, summary_file: TextIO) -> None:
        """Write the summary counters as JSON to an already open file."""
        json.dump(self.stats.to_summary(), summary_file)
        summary_file.flush()
        self.logger.info(f"Summary written to {getattr(summary_file, 'name', 'summary file')}")

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export the full report to a JSON file.

        Args:
            report: Report dictionary
            filepath: Output file path
        """
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False, default=str)

        self.logger.info(f"JSON report exported to {filepath}")


def format_usermap_suggestions(invalid_identities: List[Tuple[str, str]]) -> str:
    """
    Format unmapped Google+ users as a usermap.json skeleton.

    The operator replaces each name with a Discourse username, or with null to
    leave that user's content untouched.
    """
    if not invalid_identities:
        return ''

    lines = ['usermap.json suggestions', '{']
    for external_id, name in invalid_identities:
        lines.append(f'  "{external_id}": {json.dumps(name, ensure_ascii=False)},')
    lines.append('}')
    return "\n".join(lines)


__all__ = ['RunReport', 'format_usermap_suggestions']
