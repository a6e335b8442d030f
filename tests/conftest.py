from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from subextract.config import Config
from subextract.language import LanguageClassifier
from subextract.runner import ExternalToolRunner, ToolResult

SHOW_PROBE_OUTPUT = """\
ffprobe version 6.1 Copyright (c) 2007-2023 the FFmpeg developers
Input #0, matroska,webm, from 'show.mkv':
  Duration: 00:42:10.05, start: 0.000000, bitrate: 2500 kb/s
  Stream #0:0(eng): Video: h264 (High), yuv420p(tv, bt709), 1920x1080, 23.98 fps (default)
  Stream #0:1(eng): Audio: aac (LC), 48000 Hz, stereo, fltp (default)
  Stream #0:2(eng): Subtitle: subrip (default)
    Metadata:
      title           : English Subtitle
  Stream #0:3: Subtitle: ass
"""

MOVIE_PROBE_OUTPUT = """\
Input #0, matroska,webm, from 'movie.mkv':
  Duration: 01:51:00.00, start: 0.000000, bitrate: 4100 kb/s
  Stream #0:0: Video: hevc (Main 10), yuv420p10le, 3840x2160
  Stream #0:1(fre): Audio: eac3, 48000 Hz, 5.1(side), fltp
  Stream #0:4: Subtitle: subrip
"""

MKVMERGE_OUTPUT = """\
File 'show.mkv': container: Matroska
Track ID 0: video (AVC/H.264/MPEG-4p10)
Track ID 1: audio (AAC)
Track ID 2: subtitles (SubRip/SRT)
Track ID 3: subtitles (SubStationAlpha)
Attachment ID 1: type 'font/ttf', size 55772 bytes, file name 'arial.ttf'
"""

ENGLISH_SRT = """\
1
00:00:01,000 --> 00:00:03,000
{\\an8}Where do you think you are going?

2
00:00:04,000 --> 00:00:06,500
I told you we should have stayed at home tonight.
"""

SPANISH_SRT = """\
1
00:00:01,000 --> 00:00:03,000
¿Adónde crees que vas?

2
00:00:04,000 --> 00:00:06,500
Te dije que deberíamos habernos quedado en casa esta noche.
"""


class FakeRunner(ExternalToolRunner):
    """Answers inspector calls from canned output and fakes extraction by writing files."""

    def __init__(self, probe_results: Optional[Dict[str, Tuple[str, str, int]]] = None,
                 track_contents: Optional[Dict[int, str]] = None,
                 failing_streams=(), missing_tools=(), progress_lines=()):
        self.probe_results = probe_results or {}
        self.track_contents = track_contents or {}
        self.failing_streams = set(failing_streams)
        self.missing_tools = set(missing_tools)
        self.progress_lines = list(progress_lines)
        self.calls: List[Tuple[str, List[str]]] = []

    def run(self, command: str, args: List[str], on_output=None) -> ToolResult:
        self.calls.append((command, list(args)))
        if command in self.missing_tools:
            raise FileNotFoundError(f"No such file or directory: '{command}'")

        if args[0] == '-i':
            stdout, stderr, exit_code = self.probe_results.get(Path(args[1]).name, ('', '', 1))
            return ToolResult(stdout, stderr, exit_code)

        if command == 'ffmpeg':
            stream_index = int(args[args.index('-map') + 1].split(':')[1])
            output_path = args[-1]
        else:
            index, output_path = args[2].split(':', 1)
            stream_index = int(index)

        if on_output is not None:
            for line in self.progress_lines:
                on_output(line)

        if stream_index in self.failing_streams:
            return ToolResult('', f"Error: track {stream_index} could not be extracted", 2)

        Path(output_path).write_text(self.track_contents.get(stream_index, ENGLISH_SRT), encoding='utf-8')
        return ToolResult('', '', 0)

    def extraction_calls(self):
        return [call for call in self.calls if call[1][0] != '-i']


class FakeClassifier(LanguageClassifier):
    def __init__(self, labels_by_marker: Dict[str, str]):
        self.labels_by_marker = labels_by_marker
        self.calls: List[str] = []

    def detect(self, text: str, top_n: int = 1) -> List[str]:
        self.calls.append(text)
        for marker, label in self.labels_by_marker.items():
            if marker in text:
                return [label]
        return []


@pytest.fixture
def config():
    config = Config()
    config.log_file = None
    config.low_priority = False
    config.max_workers = 2
    return config


@pytest.fixture
def media_dir(tmp_path):
    def _make(*names):
        for name in names:
            (tmp_path / name).write_bytes(b'\x1aE\xdf\xa3 fake matroska')
        return tmp_path.resolve()
    return _make
