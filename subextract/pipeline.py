import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Union

from subextract.config import Config
from subextract.errors import SubExtractError, ValidationError
from subextract.extractor import TrackExtractor
from subextract.janitor import ArtifactJanitor
from subextract.language import LangdetectClassifier, LanguageClassifier, LanguageResolver
from subextract.models import Failure, MediaFile, PipelineResult, Stage, Success
from subextract.probe import ContainerProbe
from subextract.runner import ExternalToolRunner, SubprocessRunner, default_worker_count
from subextract.sanitizer import SubtitleSanitizer

logger = logging.getLogger(__name__)


def validate_media_file(file_path: Union[str, Path, None], extensions: Sequence[str]) -> MediaFile:
    if not file_path:
        raise ValidationError(f"Filepath not valid: {file_path}", file_path)

    path = Path(file_path).expanduser().resolve()
    if not path.is_file() or not os.access(path, os.R_OK):
        raise ValidationError(f"File [{path}] does not exist or is not readable", str(path))

    allowed = {ext.lower() for ext in extensions}
    if path.suffix.lower() not in allowed:
        raise ValidationError(f"File extension [{path.suffix}] not valid", str(path))

    return MediaFile(path)


class Pipeline:
    """Probe -> extract -> resolve -> sanitize -> finalize, once per container.

    Stages run strictly in order. Any failure stops the file where it is and
    leaves the directory in its intermediate state; batches move on to the
    next file.
    """

    def __init__(self, config: Config, runner: Optional[ExternalToolRunner] = None,
                 classifier: Optional[LanguageClassifier] = None):
        self.config = config
        self.runner = runner or SubprocessRunner(low_priority=config.low_priority)

        if not config.detect_content_language:
            classifier = None
        elif classifier is None:
            classifier = LangdetectClassifier()

        show_details = config.show_details
        self.probe = ContainerProbe(self.runner, config.inspector, show_details)
        self.extractor = TrackExtractor(self.runner, config.extractor, config.max_workers, show_details)
        self.resolver = LanguageResolver(classifier, config.max_workers, show_details)
        self.sanitizer = SubtitleSanitizer(config.replace_patterns, show_details)
        self.janitor = ArtifactJanitor(show_details)

    def process_file(self, file_path: Union[str, Path, MediaFile], language: Optional[str] = None) -> PipelineResult:
        language = language or self.config.language
        stage = Stage.VALIDATING
        media = file_path

        try:
            if not isinstance(media, MediaFile):
                media = validate_media_file(file_path, self.config.media_extensions)
            logger.info(f"Processing [{language}] {media.path}")

            stage = Stage.PROBING
            descriptors = self.probe.probe(media)

            stage = Stage.EXTRACTING
            tracks = self.extractor.extract_all(media, descriptors)

            stage = Stage.RESOLVING
            chosen = tracks[self.resolver.resolve(tracks, language)]
            logger.info(f"Selected stream {chosen.source_stream_index} ({chosen.language_label}) for {media.name}")

            stage = Stage.SANITIZING
            self.sanitizer.sanitize(chosen.file_path)

            stage = Stage.FINALIZING
            output_path = self.janitor.finalize(
                media.working_dir, chosen.file_path, [track.file_path for track in tracks],
                media.base_name, media.track_prefix
            )

        except SubExtractError as e:
            failed_stage = e.stage or stage
            logger.error(f"Aborted [{failed_stage}] {_display_name(media)}: {e.message}")
            return Failure(media, failed_stage, e)

        logger.info(f"Done: {output_path}")
        return Success(media, output_path, chosen)

    def find_media_files(self, directory: Union[str, Path]) -> List[Path]:
        directory_path = Path(directory)
        extensions = {ext.lower() for ext in self.config.media_extensions}

        media_files = sorted(
            file_path for file_path in directory_path.rglob('*')
            if file_path.suffix.lower() in extensions and file_path.is_file()
        )

        if self.config.show_details:
            logger.info(f"Found {len(media_files)} media files in {directory_path}")
        return media_files

    def process_batch(self, file_paths: Sequence[Union[str, Path]], language: Optional[str] = None) -> List[PipelineResult]:
        if not file_paths:
            return []

        workers = min(default_worker_count(self.config.max_workers), len(file_paths))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [(file_path, executor.submit(self.process_file, file_path, language))
                       for file_path in file_paths]

            results = []
            for file_path, future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error(f"Error processing {file_path}: {e}")
                    results.append(Failure(file_path, None, e))
        return results

    def process_directory(self, directory: Union[str, Path], language: Optional[str] = None) -> List[PipelineResult]:
        return self.process_batch(self.find_media_files(directory), language)

    def run(self, target: Union[str, Path, None], language: Optional[str] = None) -> List[PipelineResult]:
        if target and Path(target).is_dir():
            return self.process_directory(target, language)
        return [self.process_file(target, language)]


def _display_name(media) -> str:
    if isinstance(media, MediaFile):
        return media.name
    return str(media)
