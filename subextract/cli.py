import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from subextract import VERSION
from subextract.config import EXTRACTORS, INSPECTORS, Config, find_executable
from subextract.errors import ConfigurationError
from subextract.models import PipelineResult
from subextract.pipeline import Pipeline
from subextract.runner import SubprocessRunner, setup_cpu_limits

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

logger = logging.getLogger('subextract')

DEPENDENCY_SOURCES = {
    'ffprobe': 'FFmpeg (https://ffmpeg.org/download.html)',
    'ffmpeg': 'FFmpeg (https://ffmpeg.org/download.html)',
    'mkvmerge': 'MKVToolNix (https://mkvtoolnix.download/downloads.html)',
    'mkvextract': 'MKVToolNix (https://mkvtoolnix.download/downloads.html)',
}


def setup_logging(level: int = logging.INFO):
    """Console logging for the whole run, config loading included."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


def add_log_file(log_file: Optional[str]):
    if not log_file:
        return

    log_dir = os.path.dirname(log_file)
    try:
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    except OSError as e:
        logger.error(f"Could not open log file {log_file}: {e}")
        return

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Extract the embedded subtitle track matching a language and store it as <name>.srt'
    )
    parser.add_argument('path', nargs='?',
                        help='Media file or directory (alternative to --file / --directory)')
    parser.add_argument('--file', help='Single media file to process')
    parser.add_argument('--directory', help='Directory to scan recursively')
    parser.add_argument('--language',
                        help='Preferred subtitle language (default: $SUBEXTRACT_LANGUAGE or config)')
    parser.add_argument('--config', default='config/config.yml',
                        help='Configuration file path (default: config/config.yml)')
    parser.add_argument('--create-config', action='store_true',
                        help='Create a sample configuration file')
    parser.add_argument('--inspector', choices=INSPECTORS,
                        help='Override the stream inspector from config')
    parser.add_argument('--extractor', choices=EXTRACTORS,
                        help='Override the track extractor from config')
    parser.add_argument('--no-detect', action='store_true',
                        help='Disable content based language detection')
    parser.add_argument('--workers', type=int,
                        help='Maximum parallel files/extractions (0 = auto)')
    parser.add_argument('--log-file', help='Override the log file from config')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Force verbose logging (overrides config)')
    parser.add_argument('--quiet', '-q', action='store_true',
                        help='Force quiet mode (overrides config)')
    parser.add_argument('--version', action='version', version=f'%(prog)s {VERSION}')
    return parser


def resolve_targets(args, config: Config) -> List[str]:
    """Command line first, then the media manager's environment, then config paths."""
    for target in (args.file, args.directory, args.path):
        if target:
            return [target]

    env_path = os.environ.get('sonarr_episodefile_path')
    if env_path:
        return [env_path]

    return list(config.path)


def check_dependencies(config: Config) -> dict:
    executables = {}
    missing = []
    for dep in config.required_executables():
        found = find_executable(dep)
        if found:
            executables[dep] = found
        else:
            missing.append(dep)

    if missing:
        logger.error("Missing required dependencies:")
        for dep in missing:
            logger.error(f"  - {dep}: Install from {DEPENDENCY_SOURCES.get(dep, dep)}")
        sys.exit(1)

    return executables


def print_summary(results: List[PipelineResult], runtime_seconds: float):
    succeeded = [r for r in results if r.ok]
    failed = [r for r in results if not r.ok]

    print(f"\n{'='*60}")
    print("PROCESSING SUMMARY")
    print(f"{'='*60}")
    for result in succeeded:
        stream = f" (stream {result.track.source_stream_index})" if result.track else ""
        print(f"{result.media.name}: {result.output_path.name}{stream}")
    for result in failed:
        media = getattr(result.media, 'name', result.media)
        print(f"{media}: failed at {result.stage or 'unknown'} - {result.message}")

    print(f"\nFiles processed: {len(results)}, succeeded: {len(succeeded)}, failed: {len(failed)}")
    print(f"Total runtime: {runtime_seconds:.2f}s")


def main(argv: Optional[List[str]] = None) -> int:
    start_time = time.time()
    args = build_parser().parse_args(argv)

    if args.create_config:
        Config().create_sample_config(args.config)
        return 0

    setup_logging()
    config = Config()
    config.load_from_file(args.config)

    language = args.language or os.environ.get('SUBEXTRACT_LANGUAGE')
    if language:
        config.language = language
    if args.inspector:
        config.inspector = args.inspector
    if args.extractor:
        config.extractor = args.extractor
    if args.no_detect:
        config.detect_content_language = False
    if args.workers is not None:
        config.max_workers = args.workers
    if args.log_file:
        config.log_file = args.log_file
    if args.verbose:
        config.show_details = True
    elif args.quiet:
        config.show_details = False

    logging.getLogger().setLevel(logging.INFO if config.show_details else logging.WARNING)
    add_log_file(config.log_file)

    try:
        config.validate()
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    targets = resolve_targets(args, config)
    if not targets:
        logger.error("No file or directory given (use --file, --directory or set sonarr_episodefile_path)")
        return 0

    executables = check_dependencies(config)
    if config.low_priority:
        setup_cpu_limits()

    pipeline = Pipeline(config, runner=SubprocessRunner(executables, config.low_priority))

    results = []
    for target in targets:
        if config.show_details:
            logger.info(f"Processing target: {target} [{config.language}]")
        results.extend(pipeline.run(target))

    if len(results) > 1 or any(Path(t).is_dir() for t in targets):
        print_summary(results, time.time() - start_time)

    # Per-file failures are reported in the log, never through the exit status
    return 0


if __name__ == "__main__":
    sys.exit(main())
