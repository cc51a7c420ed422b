"""
Module for enumerating files already present in the watched folder.
"""
import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


class FileScanner:
    """Lists the immediate files of a folder."""

    def scan_folder(self, folder: Path) -> List[Path]:
        """List regular files directly inside ``folder``.

        Subdirectories are skipped with a logged notice; nothing is recursed.

        Args:
            folder: Path to the folder to scan

        Returns:
            Sorted list of absolute file paths found
        """
        if not folder.exists():
            logger.error(f"Folder does not exist: {folder}")
            return []

        files = []
        try:
            for path in folder.iterdir():
                if path.is_dir():
                    logger.debug(f"Skipping directory during scan: {path}")
                    continue
                if path.is_file():
                    files.append(path.absolute())
        except OSError as e:
            logger.error(f"Error scanning folder {folder}: {e}")
            return []

        logger.debug(f"Found {len(files)} existing files in {folder}")
        return sorted(files)
