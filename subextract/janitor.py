import glob
import logging
import os
import stat
from pathlib import Path
from typing import Optional, Sequence

from subextract.errors import IoFailure
from subextract.models import TRACK_SUFFIX, Stage

logger = logging.getLogger(__name__)


class ArtifactJanitor:
    def __init__(self, show_details: bool = True):
        self.show_details = show_details

    def finalize(self, working_dir: Path, chosen: Path, candidates: Sequence[Path],
                 base_name: Optional[str] = None, track_prefix: Optional[str] = None) -> Path:
        """Rename the chosen track to <base>.srt and remove every other candidate.

        Delete and chmod failures are logged and cleanup carries on; only a
        failed rename aborts.
        """
        working_dir = Path(working_dir)
        chosen = Path(chosen)
        if track_prefix is None:
            track_prefix = self._prefix_from_track(chosen)
        if base_name is None:
            base_name = Path(track_prefix).stem
        output_path = working_dir / f"{base_name}.srt"

        try:
            chosen.replace(output_path)
        except OSError as e:
            raise IoFailure(f"rename to {output_path.name} failed: {e}", chosen, Stage.FINALIZING)
        if self.show_details:
            logger.info(f"Updated {chosen.name} with new name {output_path.name}")

        for candidate in candidates:
            candidate = Path(candidate)
            if candidate == chosen or candidate == output_path:
                continue
            self.delete_track(candidate)

        self.cleanup_leftover_tracks(working_dir, track_prefix)
        self.chmod_track(output_path)
        return output_path

    @staticmethod
    def _prefix_from_track(track: Path) -> str:
        """show.mkv.3.track.srt -> show.mkv"""
        name = track.name
        if name.endswith(TRACK_SUFFIX):
            name = name[:-len(TRACK_SUFFIX)]
            head, _, tail = name.rpartition('.')
            if head and tail.isdigit():
                return head
        return Path(name).stem

    def delete_track(self, track: Path) -> bool:
        try:
            track.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error(f"Could not remove leftover track {track.name}: {e}")
            return False
        if self.show_details:
            logger.info(f"Removed leftover track {track.name}")
        return True

    def cleanup_leftover_tracks(self, working_dir: Path, track_prefix: str):
        """Remove <prefix>.<index>.track.srt files left behind by earlier aborted runs."""
        prefix = f"{track_prefix}."
        for track in sorted(Path(working_dir).glob(f"{glob.escape(track_prefix)}.*{TRACK_SUFFIX}")):
            # only "<prefix>.<digits>.track.srt"; "<prefix>.part2.3.track.srt" belongs to another file
            index = track.name[len(prefix):-len(TRACK_SUFFIX)]
            if index.isdigit() and track.is_file():
                self.delete_track(track)

    def chmod_track(self, track: Path) -> bool:
        try:
            mode = track.stat().st_mode
            os.chmod(track, mode | stat.S_IRGRP | stat.S_IWGRP)
        except OSError as e:
            logger.warning(f"chmod g+rw on track {track.name} failed: {e}")
            return False
        if self.show_details:
            logger.info(f"chmod g+rw on track {track.name} done")
        return True
