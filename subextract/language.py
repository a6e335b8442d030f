import logging
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import langdetect
from langdetect import detect_langs
from langdetect.detector_factory import init_factory
from langdetect.lang_detect_exception import LangDetectException

from subextract.errors import NoCandidatesError
from subextract.models import UNDEFINED_LANGUAGE
from subextract.runner import default_worker_count

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {
    'english': 'eng',
    'spanish': 'spa',
    'french': 'fre',
    'german': 'ger',
    'italian': 'ita',
    'portuguese': 'por',
    'russian': 'rus',
    'japanese': 'jpn',
    'chinese': 'chi',
    'korean': 'kor',
    'arabic': 'ara',
    'hindi': 'hin',
    'dutch': 'dut',
    'swedish': 'swe',
    'norwegian': 'nor',
    'danish': 'dan',
    'finnish': 'fin',
    'polish': 'pol',
    'czech': 'cze',
    'hungarian': 'hun',
    'greek': 'gre',
    'turkish': 'tur',
    'hebrew': 'heb',
    'thai': 'tha',
    'vietnamese': 'vie',
    'ukrainian': 'ukr',
    'bulgarian': 'bul',
    'romanian': 'rum',
    'slovak': 'slo',
    'slovenian': 'slv',
    'serbian': 'srp',
    'croatian': 'hrv',
    'bosnian': 'bos',
    'albanian': 'alb',
    'macedonian': 'mac',
    'lithuanian': 'lit',
    'latvian': 'lav',
    'estonian': 'est',
    'icelandic': 'ice',
    'irish': 'gle',
    'welsh': 'wel',
    'basque': 'baq',
    'catalan': 'cat',
    'galician': 'glg',
    'persian': 'per',
    'farsi': 'per',
    'urdu': 'urd',
    'bengali': 'ben',
    'tamil': 'tam',
    'telugu': 'tel',
    'malay': 'may',
    'indonesian': 'ind',
    'tagalog': 'tgl',
    'filipino': 'tgl',
    'afrikaans': 'afr',
    'swahili': 'swa',
    'latin': 'lat',
    'mandarin': 'chi',
    'cantonese': 'chi',
}

ISO639_1_TO_2 = {
    'en': 'eng', 'es': 'spa', 'fr': 'fre', 'de': 'ger', 'it': 'ita',
    'pt': 'por', 'ru': 'rus', 'ja': 'jpn', 'ko': 'kor', 'zh': 'chi',
    'ar': 'ara', 'hi': 'hin', 'nl': 'dut', 'sv': 'swe', 'no': 'nor',
    'da': 'dan', 'fi': 'fin', 'pl': 'pol', 'cs': 'cze', 'hu': 'hun',
    'el': 'gre', 'tr': 'tur', 'he': 'heb', 'th': 'tha', 'vi': 'vie',
    'uk': 'ukr', 'bg': 'bul', 'ro': 'rum', 'sk': 'slo', 'sl': 'slv',
    'sr': 'srp', 'hr': 'hrv', 'bs': 'bos', 'sq': 'alb', 'mk': 'mac',
    'lt': 'lit', 'lv': 'lav', 'et': 'est', 'is': 'ice', 'ga': 'gle',
    'cy': 'wel', 'eu': 'baq', 'ca': 'cat', 'gl': 'glg', 'fa': 'per',
    'ur': 'urd', 'bn': 'ben', 'ta': 'tam', 'te': 'tel', 'ms': 'may',
    'id': 'ind', 'tl': 'tgl', 'af': 'afr', 'sw': 'swa', 'la': 'lat',
}

# ISO 639-2/T codes that have a different bibliographic form
TERMINOLOGIC_TO_BIBLIOGRAPHIC = {
    'deu': 'ger',
    'fra': 'fre',
    'nld': 'dut',
    'ces': 'cze',
    'slk': 'slo',
    'ron': 'rum',
    'zho': 'chi',
    'ell': 'gre',
    'fas': 'per',
    'sqi': 'alb',
    'mkd': 'mac',
    'isl': 'ice',
    'cym': 'wel',
    'eus': 'baq',
    'msa': 'may',
}

UNDEFINED_CODES = {'', 'und', 'unknown', 'undefined', 'undetermined'}


def normalize_language_code(lang_code: Optional[str]) -> str:
    """Map names, 2-letter and 3-letter codes onto one ISO 639-2/B code."""
    if not lang_code:
        return UNDEFINED_LANGUAGE

    lang_code = lang_code.lower().strip()
    if lang_code in UNDEFINED_CODES:
        return UNDEFINED_LANGUAGE

    if lang_code in LANGUAGE_NAMES:
        return LANGUAGE_NAMES[lang_code]

    # langdetect reports regional variants such as zh-cn
    base_code = re.split(r'[-_]', lang_code)[0]
    if base_code in ISO639_1_TO_2:
        return ISO639_1_TO_2[base_code]

    return TERMINOLOGIC_TO_BIBLIOGRAPHIC.get(lang_code, lang_code)


def languages_match(candidate: Optional[str], desired: str) -> bool:
    candidate_code = normalize_language_code(candidate)
    if candidate_code == UNDEFINED_LANGUAGE:
        return False
    return candidate_code == normalize_language_code(desired)


def parse_srt_file(srt_path: Path) -> List[Dict]:
    """Parse SRT subtitle file and return list of subtitle entries."""
    with open(srt_path, 'r', encoding='utf-8', errors='replace') as f:
        content = f.read()

    blocks = re.split(r'\n\s*\n', content.replace('\r\n', '\n').strip())
    subtitles = []

    for block in blocks:
        lines = block.strip().split('\n')
        if len(lines) < 3 or ' --> ' not in lines[1]:
            continue
        try:
            index = int(lines[0].strip().lstrip('\ufeff'))
        except ValueError:
            continue
        start_time, end_time = lines[1].split(' --> ', 1)
        subtitles.append({
            'index': index,
            'start': start_time.strip(),
            'end': end_time.strip(),
            'text': '\n'.join(lines[2:]).strip()
        })

    return subtitles


def get_subtitle_text_sample(subtitles: List[Dict], max_chars: int = 5000) -> str:
    """Extract text sample from subtitles for language detection."""
    text_parts = []
    total_chars = 0

    # Sample from beginning, middle, and end
    sample_indices = []
    if len(subtitles) > 0:
        sample_indices.append(0)
    if len(subtitles) > 10:
        sample_indices.append(len(subtitles) // 2)
    if len(subtitles) > 20:
        sample_indices.append(len(subtitles) - 1)

    for idx in sample_indices:
        start_idx = max(0, idx - 5)
        end_idx = min(len(subtitles), idx + 5)

        for sub in subtitles[start_idx:end_idx]:
            text = re.sub(r'<[^>]+>', '', sub['text'])
            text = re.sub(r'\{[^}]+\}', '', text)
            text_parts.append(text)
            total_chars += len(text)

            if total_chars >= max_chars:
                break

        if total_chars >= max_chars:
            break

    return ' '.join(text_parts)


class LanguageClassifier:
    """Content classifier: raw text in, ranked language labels out."""

    def detect(self, text: str, top_n: int = 1) -> List[str]:
        raise NotImplementedError


class LangdetectClassifier(LanguageClassifier):
    def __init__(self):
        # Set seed for consistent results
        langdetect.DetectorFactory.seed = 0
        # load profiles up front, detection runs on several threads
        init_factory()

    def detect(self, text: str, top_n: int = 1) -> List[str]:
        try:
            detected_langs = detect_langs(text)
        except LangDetectException as e:
            logger.warning(f"Language detection failed: {e}")
            return []
        return [lang.lang for lang in detected_langs[:top_n]]


class LanguageResolver:
    """Chooses one candidate track for the desired language.

    Order of preference: declared metadata, then detected content language,
    then the first candidate as a degraded fallback.
    """

    def __init__(self, classifier: Optional[LanguageClassifier] = None, max_workers: int = 0,
                 show_details: bool = True):
        self.classifier = classifier
        self.max_workers = max_workers
        self.show_details = show_details

    def detect_track_language(self, candidate) -> Optional[str]:
        file_path = getattr(candidate, 'file_path', None)
        if self.classifier is None or file_path is None:
            return None

        try:
            subtitles = parse_srt_file(Path(file_path))
        except OSError as e:
            logger.warning(f"Could not read {file_path} for language detection: {e}")
            return None

        text_sample = get_subtitle_text_sample(subtitles)
        if not text_sample.strip():
            logger.warning(f"Insufficient subtitle text for language detection in {Path(file_path).name}")
            return None

        results = self.classifier.detect(text_sample, 1)
        if not results:
            return None

        detected = normalize_language_code(results[0])
        if self.show_details:
            logger.info(f"Detected language from track {Path(file_path).name}: {results[0]} ({detected})")
        return detected

    def _detect_all(self, candidates: Sequence) -> List[Optional[str]]:
        workers = min(default_worker_count(self.max_workers), len(candidates))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            detected = list(executor.map(self.detect_track_language, candidates))

        for candidate, language in zip(candidates, detected):
            if hasattr(candidate, 'detected_language'):
                candidate.detected_language = language
        return detected

    def resolve(self, candidates: Sequence, desired_language: str) -> int:
        if not candidates:
            raise NoCandidatesError()

        for index, candidate in enumerate(candidates):
            if languages_match(candidate.language, desired_language):
                if self.show_details:
                    logger.info(f"Selected candidate {index} by declared language {candidate.language}")
                return index

        can_detect = self.classifier is not None and any(
            getattr(candidate, 'file_path', None) is not None for candidate in candidates
        )
        if can_detect:
            for index, detected in enumerate(self._detect_all(candidates)):
                if languages_match(detected, desired_language):
                    if self.show_details:
                        logger.info(f"Selected candidate {index} by detected language {detected}")
                    return index

        fallback = candidates[0]
        fallback_label = (
            getattr(fallback, 'detected_language', None) or fallback.language or UNDEFINED_LANGUAGE
        )
        logger.warning(
            f"Warning: Language {desired_language} is preferred but not found. "
            f"Using {fallback_label} instead."
        )
        return 0
