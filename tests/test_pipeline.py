import logging

from subextract.errors import NoCandidatesError, ProbeFailure, ValidationError
from subextract.models import Failure, Stage, Success
from subextract.pipeline import Pipeline

from conftest import (
    ENGLISH_SRT,
    MOVIE_PROBE_OUTPUT,
    SHOW_PROBE_OUTPUT,
    SPANISH_SRT,
    FakeClassifier,
    FakeRunner,
)


def test_tagged_stream_is_selected_and_other_tracks_removed(config, media_dir):
    directory = media_dir('show.mkv')
    runner = FakeRunner({'show.mkv': ('', SHOW_PROBE_OUTPUT, 0)},
                        track_contents={2: ENGLISH_SRT, 3: SPANISH_SRT})
    pipeline = Pipeline(config, runner=runner, classifier=FakeClassifier({}))

    result = pipeline.process_file(directory / 'show.mkv', 'eng')

    assert isinstance(result, Success)
    assert result.output_path == directory / 'show.srt'
    assert result.track.source_stream_index == 2
    contents = result.output_path.read_text(encoding='utf-8')
    assert contents.startswith('1\n00:00:01,000 --> 00:00:03,000\nWhere do you think')
    assert sorted(p.name for p in directory.iterdir()) == ['show.mkv', 'show.srt']
    assert len(runner.extraction_calls()) == 2


def test_untagged_single_stream_falls_back_with_warning(config, media_dir, caplog):
    directory = media_dir('movie.mkv')
    runner = FakeRunner({'movie.mkv': ('', MOVIE_PROBE_OUTPUT, 0)}, track_contents={4: ENGLISH_SRT})
    classifier = FakeClassifier({'going': 'french'})
    pipeline = Pipeline(config, runner=runner, classifier=classifier)

    with caplog.at_level(logging.WARNING):
        result = pipeline.process_file(directory / 'movie.mkv', 'english')

    assert isinstance(result, Success)
    assert result.output_path.name == 'movie.srt'
    assert result.track.detected_language == 'fre'
    assert 'preferred but not found' in caplog.text
    assert sorted(p.name for p in directory.iterdir()) == ['movie.mkv', 'movie.srt']


def test_content_detection_picks_matching_untagged_stream(config, media_dir):
    directory = media_dir('show.mkv')
    output = "Stream #0:2: Subtitle: subrip\nStream #0:3: Subtitle: subrip\n"
    runner = FakeRunner({'show.mkv': ('', output, 0)}, track_contents={2: SPANISH_SRT, 3: ENGLISH_SRT})
    classifier = FakeClassifier({'Adónde': 'es', 'going': 'en'})

    result = Pipeline(config, runner=runner, classifier=classifier).process_file(directory / 'show.mkv', 'eng')

    assert result.track.source_stream_index == 3
    assert 'Where do you think' in result.output_path.read_text(encoding='utf-8')


def test_detection_disabled_by_config(config, media_dir):
    config.detect_content_language = False
    directory = media_dir('show.mkv')
    output = "Stream #0:2: Subtitle: subrip\nStream #0:3: Subtitle: subrip\n"
    runner = FakeRunner({'show.mkv': ('', output, 0)}, track_contents={2: SPANISH_SRT, 3: ENGLISH_SRT})
    classifier = FakeClassifier({'going': 'en'})

    result = Pipeline(config, runner=runner, classifier=classifier).process_file(directory / 'show.mkv', 'eng')

    assert result.track.source_stream_index == 2
    assert classifier.calls == []


def test_probe_failure_aborts_and_batch_continues(config, media_dir):
    directory = media_dir('broken.mkv', 'show.mkv')
    runner = FakeRunner({
        'broken.mkv': ('', 'broken.mkv: Invalid data found when processing input', 1),
        'show.mkv': ('', SHOW_PROBE_OUTPUT, 0),
    })
    pipeline = Pipeline(config, runner=runner, classifier=FakeClassifier({}))

    results = pipeline.process_directory(directory, 'eng')

    assert isinstance(results[0], Failure)
    assert results[0].stage is Stage.PROBING
    assert isinstance(results[0].cause, ProbeFailure)
    assert isinstance(results[1], Success)
    assert sorted(p.name for p in directory.iterdir()) == ['broken.mkv', 'show.mkv', 'show.srt']
    assert all(call[1][1].endswith('show.mkv') for call in runner.extraction_calls())


def test_override_blocks_are_removed_from_output(config, media_dir):
    directory = media_dir('show.mkv')
    runner = FakeRunner({'show.mkv': ('', "Stream #0:2(eng): Subtitle: ass\n", 0)},
                        track_contents={2: "1\n00:00:01,000 --> 00:00:02,000\n{\\an8}Hello world\n"})

    result = Pipeline(config, runner=runner, classifier=FakeClassifier({})).process_file(directory / 'show.mkv')

    assert result.output_path.read_text(encoding='utf-8') == "1\n00:00:01,000 --> 00:00:02,000\nHello world\n"


def test_failed_extraction_of_one_stream_is_excluded(config, media_dir):
    directory = media_dir('show.mkv')
    runner = FakeRunner({'show.mkv': ('', SHOW_PROBE_OUTPUT, 0)},
                        track_contents={3: SPANISH_SRT}, failing_streams={2})

    result = Pipeline(config, runner=runner, classifier=FakeClassifier({})).process_file(directory / 'show.mkv', 'eng')

    assert isinstance(result, Success)
    assert result.track.source_stream_index == 3


def test_all_extractions_failing_aborts_file(config, media_dir):
    directory = media_dir('show.mkv')
    runner = FakeRunner({'show.mkv': ('', SHOW_PROBE_OUTPUT, 0)}, failing_streams={2, 3})

    result = Pipeline(config, runner=runner, classifier=FakeClassifier({})).process_file(directory / 'show.mkv')

    assert isinstance(result, Failure)
    assert result.stage is Stage.EXTRACTING
    assert not (directory / 'show.srt').exists()


def test_unsupported_extension_fails_before_any_subprocess(config, media_dir):
    directory = media_dir('clip.avi')
    runner = FakeRunner()

    result = Pipeline(config, runner=runner).process_file(directory / 'clip.avi')

    assert isinstance(result, Failure)
    assert result.stage is Stage.VALIDATING
    assert isinstance(result.cause, ValidationError)
    assert runner.calls == []


def test_missing_path_fails_validation(config, tmp_path):
    pipeline = Pipeline(config, runner=FakeRunner())

    assert pipeline.process_file(tmp_path / 'gone.mkv').stage is Stage.VALIDATING
    assert pipeline.process_file(None).stage is Stage.VALIDATING


def test_find_media_files_is_recursive_and_case_insensitive(config, tmp_path):
    (tmp_path / 'Season 1').mkdir()
    for name in ('Season 1/b.MKV', 'a.mkv', 'notes.txt', 'a.srt'):
        (tmp_path / name).write_bytes(b'')

    found = Pipeline(config, runner=FakeRunner()).find_media_files(tmp_path)

    assert [p.relative_to(tmp_path).as_posix() for p in found] == ['Season 1/b.MKV', 'a.mkv']


def test_unexpected_error_in_one_file_does_not_stop_batch(config, media_dir, monkeypatch):
    directory = media_dir('a.mkv', 'show.mkv')
    runner = FakeRunner({'show.mkv': ('', SHOW_PROBE_OUTPUT, 0)})
    pipeline = Pipeline(config, runner=runner, classifier=FakeClassifier({}))
    original = pipeline.process_file

    def flaky(file_path, language=None):
        if file_path.name == 'a.mkv':
            raise RuntimeError('boom')
        return original(file_path, language)

    monkeypatch.setattr(pipeline, 'process_file', flaky)
    results = pipeline.process_directory(directory)

    assert not results[0].ok
    assert results[0].stage is None
    assert results[1].ok


def test_run_dispatches_single_file(config, media_dir):
    directory = media_dir('show.mkv')
    runner = FakeRunner({'show.mkv': ('', SHOW_PROBE_OUTPUT, 0)})

    results = Pipeline(config, runner=runner, classifier=FakeClassifier({})).run(str(directory / 'show.mkv'))

    assert len(results) == 1 and results[0].ok


def test_no_candidates_error_is_distinct():
    assert NoCandidatesError().stage is Stage.RESOLVING


def test_same_stem_containers_in_one_batch_both_succeed(config, media_dir):
    config.media_extensions = ['.mkv', '.mp4']
    directory = media_dir('show.mkv', 'show.mp4')
    runner = FakeRunner({
        'show.mkv': ('', SHOW_PROBE_OUTPUT, 0),
        'show.mp4': ('', SHOW_PROBE_OUTPUT, 0),
    }, track_contents={2: ENGLISH_SRT, 3: SPANISH_SRT})

    results = Pipeline(config, runner=runner, classifier=FakeClassifier({})).process_directory(directory, 'eng')

    assert [r.ok for r in results] == [True, True]
    assert all(r.track.source_stream_index == 2 for r in results)
    assert sorted(p.name for p in directory.iterdir()) == ['show.mkv', 'show.mp4', 'show.srt']
