"""
JSON output assembler for digest data.
"""
import json
from pathlib import Path

import structlog
from pydantic import ValidationError

from repodigest.schemas import Digest

logger = structlog.get_logger()


class JSONAssembler:
    """Assemble a Digest into JSON output validated by the Digest schema."""

    def __init__(self):
        self.indent = 2
        self.ensure_ascii = False

    def render(self, digest: Digest) -> str:
        return json.dumps(digest.model_dump(mode="json"), indent=self.indent,
                          ensure_ascii=self.ensure_ascii)

    def write_digest(self, digest: Digest, output_path: Path) -> None:
        """Write digest to a JSON file."""
        logger.info("Writing JSON digest", output_path=str(output_path))

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(self.render(digest))

            logger.info("JSON digest written successfully",
                        output_path=str(output_path),
                        **digest.stats.model_dump())

        except Exception as e:
            logger.error("Failed to write JSON digest",
                         output_path=str(output_path),
                         error=str(e))
            raise

    def read_digest(self, input_path: Path) -> Digest:
        """Read a digest back from JSON, validating against the schema."""
        logger.info("Reading JSON digest", input_path=str(input_path))

        try:
            with open(input_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            # stats is derived from the sections
            data.pop("stats", None)
            digest = Digest.model_validate(data)

            logger.info("JSON digest read successfully",
                        input_path=str(input_path),
                        date=digest.date)
            return digest

        except (OSError, ValueError, ValidationError) as e:
            logger.error("Failed to read JSON digest",
                         input_path=str(input_path),
                         error=str(e))
            raise
