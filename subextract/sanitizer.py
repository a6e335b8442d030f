import logging
import os
import re
from pathlib import Path
from typing import List, Optional

from subextract.config import DEFAULT_REPLACE_PATTERNS
from subextract.errors import ConfigurationError, IoFailure
from subextract.models import Stage

logger = logging.getLogger(__name__)


class SubtitleSanitizer:
    def __init__(self, patterns: Optional[List[str]] = None, show_details: bool = True):
        if patterns is None:
            patterns = DEFAULT_REPLACE_PATTERNS
        try:
            self.patterns = [re.compile(pattern) for pattern in patterns]
        except re.error as e:
            raise ConfigurationError(str(e), 'replace_patterns')
        self.show_details = show_details

    def clean_text(self, contents: str) -> str:
        """Replace every match of every pattern with nothing."""
        for pattern in self.patterns:
            contents = pattern.sub('', contents)
        return contents

    def sanitize(self, file_path: Path) -> Path:
        """Strip every pattern match from the track, leaving every other byte as it was.

        Tracks are not always UTF-8 (latin-1 rips are common), so undecodable
        bytes are carried through unchanged. The new contents go to a sibling
        file that replaces the track only once fully written.
        """
        file_path = Path(file_path)
        try:
            with open(file_path, 'r', encoding='utf-8', errors='surrogateescape', newline='') as f:
                contents = f.read()
        except OSError as e:
            raise IoFailure(f"read failed: {e}", file_path, Stage.SANITIZING)

        cleaned = self.clean_text(contents)
        if self.show_details:
            logger.info(f"Read file {file_path.name} and removed {len(contents) - len(cleaned)} characters")

        temp_path = file_path.with_name(f".{file_path.name}.tmp")
        try:
            with open(temp_path, 'w', encoding='utf-8', errors='surrogateescape', newline='') as f:
                f.write(cleaned)
            os.replace(temp_path, file_path)
        except OSError as e:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as cleanup_error:
                logger.warning(f"Could not remove {temp_path.name}: {cleanup_error}")
            raise IoFailure(f"write failed: {e}", file_path, Stage.SANITIZING)

        if self.show_details:
            logger.info(f"Wrote new contents to {file_path.name}")
        return file_path
