import logging
import os
import re
import shutil
import sys
from typing import List, Optional

import yaml

from subextract.errors import ConfigurationError

logger = logging.getLogger(__name__)

INSPECTORS = ('ffprobe', 'mkvmerge')
EXTRACTORS = ('mkvextract', 'ffmpeg')

# Brace-delimited ASS/SSA override blocks such as {\an8} left behind in SubRip output
DEFAULT_REPLACE_PATTERNS = [r'\{[^}]*\}']


class Config:
    def __init__(self):
        self.path = []
        self.language = 'eng'
        self.inspector = 'ffprobe'
        self.extractor = 'mkvextract'
        self.replace_patterns = list(DEFAULT_REPLACE_PATTERNS)
        self.media_extensions = ['.mkv']
        self.detect_content_language = True
        self.max_workers = 0
        self.low_priority = True
        self.show_details = True
        self.log_file = 'logs/subextract.log'

    def load_from_file(self, config_path: str = "config/config.yml"):
        if not os.path.exists(config_path):
            logger.info(f"Config file {config_path} not found, using defaults")
            return

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config file {config_path}: {e}")
            logger.info("Using default configuration")
            return

        if config_data:
            path = config_data.get('path', self.path)
            self.path = [path] if isinstance(path, str) else list(path or [])
            self.language = config_data.get('language', self.language)
            self.inspector = config_data.get('inspector', self.inspector)
            self.extractor = config_data.get('extractor', self.extractor)
            self.replace_patterns = config_data.get('replace_patterns', self.replace_patterns)
            self.media_extensions = config_data.get('media_extensions', self.media_extensions)
            self.detect_content_language = config_data.get('detect_content_language', self.detect_content_language)
            self.max_workers = config_data.get('max_workers', self.max_workers)
            self.low_priority = config_data.get('low_priority', self.low_priority)
            self.show_details = config_data.get('show_details', self.show_details)
            self.log_file = config_data.get('log_file', self.log_file)

        logger.info(f"Configuration loaded from {config_path}")

    def validate(self):
        if self.inspector not in INSPECTORS:
            raise ConfigurationError(f"must be one of {', '.join(INSPECTORS)}, got '{self.inspector}'", 'inspector')
        if self.extractor not in EXTRACTORS:
            raise ConfigurationError(f"must be one of {', '.join(EXTRACTORS)}, got '{self.extractor}'", 'extractor')
        if not self.language or not str(self.language).strip():
            raise ConfigurationError("a language code is required", 'language')
        if not isinstance(self.media_extensions, list):
            raise ConfigurationError("must be a list of file extensions", 'media_extensions')
        if not isinstance(self.replace_patterns, list):
            raise ConfigurationError("must be a list of regular expressions", 'replace_patterns')
        for pattern in self.replace_patterns:
            try:
                re.compile(pattern)
            except (re.error, TypeError) as e:
                raise ConfigurationError(f"invalid pattern {pattern!r}: {e}", 'replace_patterns')
        try:
            self.max_workers = int(self.max_workers)
        except (TypeError, ValueError):
            raise ConfigurationError(f"must be an integer, got '{self.max_workers}'", 'max_workers')
        self.media_extensions = [self._normalize_extension(ext) for ext in self.media_extensions]

    @staticmethod
    def _normalize_extension(ext: str) -> str:
        ext = str(ext).lower().strip()
        return ext if ext.startswith('.') else f".{ext}"

    def required_executables(self) -> List[str]:
        return [self.inspector, self.extractor]

    def create_sample_config(self, config_path: str = "config/config.yml"):
        sample_config = {
            'path': [
                "/data/tv",
                "/data/movies"
            ],
            'language': 'eng',
            'inspector': 'ffprobe',
            'extractor': 'mkvextract',
            'replace_patterns': [
                r'\{[^}]*\}',
            ],
            'media_extensions': ['.mkv'],
            'detect_content_language': True,
            'max_workers': 0,  # 0 = derive from CPU count
            'low_priority': True,
            'show_details': True,
            'log_file': 'logs/subextract.log',
        }

        try:
            config_dir = os.path.dirname(config_path)
            if config_dir and not os.path.exists(config_dir):
                os.makedirs(config_dir, exist_ok=True)

            with open(config_path, 'w', encoding='utf-8') as f:
                yaml.dump(sample_config, f, default_flow_style=False, sort_keys=False)
            print(f"Sample configuration file created: {config_path}")
            print("Edit this file to customize your settings")
        except OSError as e:
            logger.error(f"Error creating config file: {e}")


def find_executable(name: str) -> Optional[str]:
    if shutil.which(name):
        return name

    if sys.platform == 'win32':
        exe_name = f"{name}.exe"
        if shutil.which(exe_name):
            return exe_name

        common_paths = [
            f"C:\\Program Files\\MKVToolNix\\{exe_name}",
            f"C:\\Program Files (x86)\\MKVToolNix\\{exe_name}",
            f"C:\\ProgramData\\chocolatey\\lib\\mkvtoolnix\\tools\\{exe_name}",
            f"C:\\Program Files\\FFmpeg\\bin\\{exe_name}",
            f"C:\\Program Files (x86)\\FFmpeg\\bin\\{exe_name}",
        ]

        for path in common_paths:
            if os.path.exists(path):
                logger.info(f"Found {name} at: {path}")
                return path

    return None
