"""
Digest file layout under `<root>/repodigest/`.

    repodigest/daily/<date>.md             daily digest
    repodigest/range/<since>_to_<until>.md range digest
    repodigest/latest.md                   copy of the most recent digest

The JSON digest is written next to the daily/range Markdown file.
"""
import re
from pathlib import Path
from typing import NamedTuple, Optional, Union

import structlog

from repodigest.assemble.jsonout import JSONAssembler
from repodigest.schemas import Digest

logger = structlog.get_logger()

OUTPUT_DIR = "repodigest"
UNSAFE_FILENAME_CHARS = re.compile(r'[^a-zA-Z0-9_-]')


class WrittenFiles(NamedTuple):
    primary: Path
    latest: Path
    json: Optional[Path]


def sanitize_for_filename(value: str) -> str:
    return UNSAFE_FILENAME_CHARS.sub("-", value)


class DigestWriter:
    """Write rendered digests to the repository's output directory."""

    def __init__(self, root: Union[str, Path], write_json: bool = True):
        self.output_root = Path(root) / OUTPUT_DIR
        self.write_json = write_json
        self.json_assembler = JSONAssembler()

    def write_daily(self, content: str, date: str, digest: Optional[Digest] = None) -> WrittenFiles:
        return self._write(self.output_root / "daily" / f"{date}.md", content, digest)

    def write_range(self, content: str, since: str, until: str,
                    digest: Optional[Digest] = None) -> WrittenFiles:
        name = f"{sanitize_for_filename(since)}_to_{sanitize_for_filename(until)}.md"
        return self._write(self.output_root / "range" / name, content, digest)

    def _write(self, primary: Path, content: str, digest: Optional[Digest]) -> WrittenFiles:
        latest = self.output_root / "latest.md"
        primary.parent.mkdir(parents=True, exist_ok=True)

        primary.write_text(content, encoding="utf-8")
        latest.write_text(content, encoding="utf-8")

        json_path = None
        if digest is not None and self.write_json:
            json_path = primary.with_suffix(".json")
            self.json_assembler.write_digest(digest, json_path)

        logger.info("Digest files written",
                    primary=str(primary),
                    latest=str(latest),
                    json=str(json_path) if json_path else None)

        return WrittenFiles(primary=primary, latest=latest, json=json_path)
