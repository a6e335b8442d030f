from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

UNDEFINED_LANGUAGE = 'und'
TRACK_SUFFIX = '.track.srt'


class Stage(Enum):
    VALIDATING = 'validating'
    PROBING = 'probing'
    EXTRACTING = 'extracting'
    RESOLVING = 'resolving'
    SANITIZING = 'sanitizing'
    FINALIZING = 'finalizing'
    DONE = 'done'

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class MediaFile:
    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def base_name(self) -> str:
        return self.path.stem

    @property
    def working_dir(self) -> Path:
        return self.path.parent

    @property
    def output_path(self) -> Path:
        """Canonical subtitle name beside the container: <base>.srt"""
        return self.working_dir / f"{self.base_name}.srt"

    @property
    def track_prefix(self) -> str:
        """Temp tracks carry the full file name: <name>.<index>.track.srt"""
        return self.path.name

    def track_path(self, stream_index: int) -> Path:
        return self.working_dir / f"{self.track_prefix}.{stream_index}{TRACK_SUFFIX}"


@dataclass(frozen=True)
class StreamDescriptor:
    stream_index: int
    language: Optional[str] = None

    @property
    def language_label(self) -> str:
        return self.language or UNDEFINED_LANGUAGE


@dataclass
class ExtractedTrack:
    source_stream_index: int
    file_path: Path
    declared_language: Optional[str] = None
    detected_language: Optional[str] = None

    @property
    def language(self) -> Optional[str]:
        return self.declared_language

    @property
    def language_label(self) -> str:
        return self.declared_language or self.detected_language or UNDEFINED_LANGUAGE


@dataclass
class Success:
    media: MediaFile
    output_path: Path
    track: Optional[ExtractedTrack] = None

    ok = True


@dataclass
class Failure:
    media: Union[MediaFile, Path, str, None]
    stage: Optional[Stage]
    cause: Exception

    ok = False

    @property
    def message(self) -> str:
        return getattr(self.cause, 'message', None) or str(self.cause)


PipelineResult = Union[Success, Failure]
