"""
Markdown output assembler for the internal (team-facing) digest.
"""
from typing import List

from repodigest.schemas import Digest, WorkUnit

SECTION_TITLES = (
    ("due_today", "Due Today"),
    ("done", "Done"),
    ("in_progress", "In Progress"),
    ("blocked", "Blocked"),
    ("next", "Next"),
)


class MarkdownAssembler:
    """Assemble a Digest into internal Markdown."""

    def __init__(self, include_links: bool = True, include_metrics: bool = True,
                 include_stack: bool = False):
        self.include_links = include_links
        self.include_metrics = include_metrics
        self.include_stack = include_stack

    def render(self, digest: Digest) -> str:
        lines = [f"# RepoDigest {digest.date}", f"Timezone: {digest.timezone}", ""]

        if self.include_metrics:
            stats = digest.stats
            lines.append(
                f"Stats: done={stats.done}, in_progress={stats.in_progress}, "
                f"blocked={stats.blocked}, due_today={stats.due_today}"
            )
            lines.append("")

        for index, (field, title) in enumerate(SECTION_TITLES):
            if index:
                lines.append("")
            lines.extend(self._format_section(title, getattr(digest.sections, field)))

        if self.include_stack and digest.stack:
            lines.append("")
            lines.append(f"Stack: {', '.join(digest.stack)}")

        if digest.sections.notes:
            lines.append("")
            lines.append("## Notes")
            lines.extend(f"- {note}" for note in digest.sections.notes)

        return "\n".join(lines)

    def _format_section(self, title: str, units: List[WorkUnit]) -> List[str]:
        if not units:
            return [f"## {title}", "- (none)"]
        return [f"## {title}"] + [self._format_unit(unit) for unit in units]

    def _format_unit(self, unit: WorkUnit) -> str:
        due = f" (due {unit.due})" if unit.due else ""
        highlights = f": {' / '.join(unit.highlights)}" if unit.highlights else ""
        link = f" - {unit.url}" if self.include_links and unit.url else ""
        return f"- {unit.title}{due}{highlights}{link}"
