import logging
import re
from typing import List, Optional

from subextract.errors import ProbeFailure
from subextract.models import MediaFile, StreamDescriptor
from subextract.runner import ExternalToolRunner

logger = logging.getLogger(__name__)

# Matches "Stream #0:2(eng): Subtitle: ass (default)" and "Stream #0:2[0x3](eng): Subtitle: subrip"
STREAM_LINE_REGEX = re.compile(r'#[0-9]+:([0-9]+)(?:\[0x[0-9a-f]+\])?(?:\(([a-zA-Z]{2,})\))?', re.IGNORECASE)
STREAM_MARKER_REGEX = re.compile(r'Stream\s+#[0-9]+:[0-9]+')

# Matches "Track ID 2: subtitles (SubRip/SRT)"
TRACK_ID_REGEX = re.compile(r'Track ID ([0-9]+):')
BARE_ID_REGEX = re.compile(r'([0-9]{1,2}):')

UNDEFINED_TAGS = {'und', 'unknown', 'undefined', 'undetermined'}


def parse_stream_line(line: str) -> Optional[StreamDescriptor]:
    """Return the stream index and optional language from an ffprobe stream line."""
    result = STREAM_LINE_REGEX.search(line)
    if not result:
        return None

    language = result.group(2)
    if language and language.lower() in UNDEFINED_TAGS:
        language = None
    return StreamDescriptor(int(result.group(1)), language.lower() if language else None)


def parse_track_id_line(line: str) -> Optional[StreamDescriptor]:
    result = TRACK_ID_REGEX.search(line) or BARE_ID_REGEX.search(line)
    if not result:
        return None
    return StreamDescriptor(int(result.group(1)))


def detect_output_format(output: str) -> Optional[str]:
    """Decide which listing we are looking at from its content.

    Returns 'stream-info' for full stream info with inline language tags,
    'merge-info' for a bare track ID listing, or None when neither marker occurs.
    """
    if STREAM_MARKER_REGEX.search(output):
        return 'stream-info'
    if TRACK_ID_REGEX.search(output):
        return 'merge-info'
    return None


def parse_inspector_output(output: str) -> List[StreamDescriptor]:
    output_format = detect_output_format(output)
    if output_format == 'stream-info':
        marker, parse_line = 'Subtitle', parse_stream_line
    elif output_format == 'merge-info':
        marker, parse_line = 'subtitles', parse_track_id_line
    else:
        return []

    descriptors = []
    seen = set()
    for line in output.splitlines():
        if marker not in line:
            continue
        descriptor = parse_line(line)
        if descriptor is None or descriptor.stream_index in seen:
            continue
        seen.add(descriptor.stream_index)
        descriptors.append(descriptor)
    return descriptors


class ContainerProbe:
    def __init__(self, runner: ExternalToolRunner, inspector: str = 'ffprobe', show_details: bool = True):
        self.runner = runner
        self.inspector = inspector
        self.show_details = show_details

    def probe(self, media: MediaFile) -> List[StreamDescriptor]:
        try:
            result = self.runner.run(self.inspector, ['-i', str(media.path)])
        except OSError as e:
            raise ProbeFailure(f"Could not run {self.inspector}: {e}")

        if result.exit_code != 0:
            details = result.stderr.strip().splitlines()[-1:] if result.stderr else []
            raise ProbeFailure(
                f"{self.inspector} exited with code {result.exit_code}"
                + (f": {details[0]}" if details else ""),
                exit_code=result.exit_code,
            )

        descriptors = parse_inspector_output(result.output)
        if not descriptors:
            raise ProbeFailure(f"No subtitle tracks found in {media.name}")

        if self.show_details:
            found = ', '.join(f"{d.stream_index}({d.language_label})" for d in descriptors)
            logger.info(f"Found {len(descriptors)} subtitle track(s) in {media.name}: {found}")

        return descriptors
