import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Sequence

from subextract.errors import ExtractionFailure
from subextract.models import ExtractedTrack, MediaFile, StreamDescriptor
from subextract.runner import ExternalToolRunner, default_worker_count

logger = logging.getLogger(__name__)

DURATION_REGEX = re.compile(r'duration\s*:\s*([0-9]{2}):([0-9]{2}):([0-9]{2})', re.IGNORECASE)
CURRENT_TIME_REGEX = re.compile(r'size=.*time=([0-9]{2}):([0-9]{2}):([0-9]{2})', re.IGNORECASE)


def _seconds(match) -> int:
    hours, minutes, seconds = (int(group) for group in match.groups())
    return hours * 3600 + minutes * 60 + seconds


class ProgressReporter:
    """Logs "Stream <index> progress: N% in Xs" from ffmpeg status lines.

    The container duration is read from the input banner; every later
    `size=... time=HH:MM:SS` line is reported against it.
    """

    def __init__(self, stream_index: int, start: float):
        self.stream_index = stream_index
        self.start = start
        self.duration = None

    def __call__(self, line: str):
        if not self.duration:
            duration = DURATION_REGEX.search(line)
            if duration:
                self.duration = _seconds(duration)
            return

        current = CURRENT_TIME_REGEX.search(line)
        if current:
            percent = _seconds(current) / self.duration * 100
            logger.info(f"Stream {self.stream_index} progress: {percent:.2f}% in {time.time() - self.start:.2f}s")


class TrackExtractor:
    """Pulls single subtitle streams out of a container into <name>.<index>.track.srt files.

    A failed stream is dropped from the candidate list; the file only fails
    when no stream could be extracted at all.
    """

    def __init__(self, runner: ExternalToolRunner, extractor: str = 'mkvextract',
                 max_workers: int = 0, show_details: bool = True):
        self.runner = runner
        self.extractor = extractor
        self.max_workers = max_workers
        self.show_details = show_details

    def build_args(self, media: MediaFile, stream_index: int, output_path: Path) -> List[str]:
        if self.extractor == 'ffmpeg':
            # ffmpeg picks SubRip from the .srt output suffix
            return ['-y', '-i', str(media.path), '-map', f'0:{stream_index}', str(output_path)]
        return ['tracks', str(media.path), f'{stream_index}:{output_path}']

    def extract(self, media: MediaFile, stream_index: int) -> Path:
        output_path = media.track_path(stream_index)
        start = time.time()

        if self.show_details:
            logger.info(f"Starting extraction of stream {stream_index} from {media.name}")

        try:
            result = self.runner.run(self.extractor, self.build_args(media, stream_index, output_path),
                                     on_output=self._progress_reporter(stream_index, start))
        except OSError as e:
            raise ExtractionFailure(f"could not run {self.extractor}: {e}", stream_index)

        if result.exit_code != 0:
            raise ExtractionFailure(f"{self.extractor} exited with code {result.exit_code}",
                                    stream_index, exit_code=result.exit_code)
        if not output_path.exists():
            raise ExtractionFailure(f"{self.extractor} did not write {output_path.name}", stream_index)

        elapsed = time.time() - start
        if self.show_details:
            logger.info(f"Extracted subtitle track {stream_index} to {output_path.name} in {elapsed:.2f}s")
        return output_path

    def _progress_reporter(self, stream_index: int, start: float):
        # mkvextract output carries no duration to measure against
        if self.extractor == 'ffmpeg' and self.show_details:
            return ProgressReporter(stream_index, start)
        return None

    def extract_all(self, media: MediaFile, descriptors: Sequence[StreamDescriptor]) -> List[ExtractedTrack]:
        if not descriptors:
            raise ExtractionFailure("no subtitle streams to extract")

        workers = min(default_worker_count(self.max_workers), len(descriptors))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                (descriptor, executor.submit(self.extract, media, descriptor.stream_index))
                for descriptor in descriptors
            ]

            tracks = []
            failures = []
            for descriptor, future in futures:
                try:
                    file_path = future.result()
                except ExtractionFailure as e:
                    logger.error(f"{media.name}: {e.message} - excluding stream from selection")
                    failures.append(e)
                    continue
                tracks.append(ExtractedTrack(descriptor.stream_index, file_path, descriptor.language))

        if not tracks:
            if len(failures) == 1:
                raise failures[0]
            raise ExtractionFailure(f"all {len(failures)} subtitle streams failed to extract")

        return tracks
