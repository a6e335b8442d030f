from typing import Optional

from subextract.models import Stage


class SubExtractError(Exception):
    """Base error for everything that can abort a file in the pipeline."""

    stage = None

    def __init__(self, message: str, stage=None):
        if stage is not None:
            self.stage = stage
        self.message = message
        super().__init__(message)


class ValidationError(SubExtractError):
    """Bad or missing input path, or an unsupported container extension."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message, Stage.VALIDATING)


class ProbeFailure(SubExtractError):
    """The inspector failed or reported no subtitle streams."""

    def __init__(self, message: str, exit_code: Optional[int] = None):
        self.exit_code = exit_code
        super().__init__(message, Stage.PROBING)


class ExtractionFailure(SubExtractError):
    def __init__(self, message: str, stream_index: Optional[int] = None,
                 exit_code: Optional[int] = None):
        self.stream_index = stream_index
        self.exit_code = exit_code
        track_info = f" for stream {stream_index}" if stream_index is not None else ""
        super().__init__(f"Extraction failed{track_info}: {message}", Stage.EXTRACTING)


class NoCandidatesError(SubExtractError):
    """Language resolution was handed an empty candidate list."""

    def __init__(self, message: str = "No valid subtitle tracks are supplied"):
        super().__init__(message, Stage.RESOLVING)


class IoFailure(SubExtractError):
    def __init__(self, message: str, path=None, stage=None):
        self.path = path
        file_info = f" [{path}]" if path else ""
        super().__init__(f"File operation failed{file_info}: {message}", stage)


class ConfigurationError(SubExtractError):
    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        key_info = f" for setting '{config_key}'" if config_key else ""
        super().__init__(f"Configuration error{key_info}: {message}")
