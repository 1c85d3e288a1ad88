# import_json.py
"""
Bulk import of JSON files into MongoDB through the `mongoimport` tool.

`mongoimport` ships with the MongoDB Database Tools, which must be
installed separately:
https://www.mongodb.com/docs/database-tools/installation/

Each file is expected to hold a JSON array of documents. Files that were
imported successfully are moved into a "completed" directory so the next
run does not import them again.
"""

import logging
import os
import shutil
import subprocess
from typing import List, Optional

from .config import MongoSettings
from .errors import ImportCommandError
from .logging_setup import mask_secret

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE = "mongoimport"
DEFAULT_EXTENSION = "json"
COMPLETED_DIR_NAME = "completed_data"


def get_file_paths(dir_path: str, extension_name: str) -> List[str]:
    """
    Collects the paths of files under `dir_path` with the given extension.

    The walk is recursive and directories are never returned. The
    extension is compared case-insensitively, with or without a leading
    dot ("json", ".JSON"). Order follows the directory traversal.

    Args:
        dir_path (str): Root directory to scan.
        extension_name (str): Extension to match.

    Returns:
        List[str]: Matching file paths, joined onto `dir_path`.
    """
    wanted = "." + extension_name.lstrip(".").lower()
    file_paths = []

    def _on_error(error: OSError):
        logger.error("error: path %s, err %s", error.filename, error)

    for root, _dirs, files in os.walk(dir_path, onerror=_on_error):
        for file_name in files:
            path = os.path.join(root, file_name)
            if not os.path.isfile(path):
                continue
            if file_name.lower().endswith(wanted):
                file_paths.append(path)

    logger.debug(
        "Found %d '%s' file(s) under %s.", len(file_paths), wanted, dir_path
    )
    return file_paths


def move_file(src: str, dst_dir: str, overwrite: bool=False) -> str:
    """
    Moves `src` into `dst_dir`, creating the directory if needed.

    Args:
        src (str): File to move.
        dst_dir (str): Destination directory.
        overwrite (bool): If True, an existing file with the same name in
                          `dst_dir` is replaced.

    Returns:
        str: The new path of the file.

    Raises:
        FileExistsError: If the destination file exists and `overwrite`
                         is False.
        OSError: If the directory cannot be created or the move fails.
    """
    file_name = os.path.basename(src)
    os.makedirs(dst_dir, exist_ok=True)

    dst = os.path.join(dst_dir, file_name)
    if os.path.exists(dst):
        if not overwrite:
            raise FileExistsError(f"Destination already exists: {dst}")
        logger.warning("Replacing existing file %s", dst)
        os.remove(dst)

    shutil.move(src, dst)
    logger.debug("Moved %s to %s", src, dst)
    return dst


class MongoImporter:
    """Runs `mongoimport` for single files or whole directories."""

    # position of the password in build_command's argument list
    PASSWORD_INDEX = 6

    def __init__(
        self,
        settings: MongoSettings,
        executable: str=DEFAULT_EXECUTABLE,
        timeout: Optional[float]=None,
    ):
        """
        Args:
            settings (MongoSettings): Host, credentials, database and
                                      collection to import into.
            executable (str): Name or path of the mongoimport binary.
            timeout (Optional[float]): Seconds to wait for one import. None
                                       waits for as long as it takes.
        """
        self.settings = settings
        self.executable = executable
        self.timeout = timeout

    def build_command(self, file_path: str) -> List[str]:
        s = self.settings
        return [
            self.executable,
            "-h", s.host,
            "-u", s.user,
            "-p", s.password,
            "--db", s.database_name,
            "--collection", s.collection_name,
            "--file", file_path,
            "--jsonArray",
        ]

    def _loggable_command(self, command: List[str]) -> str:
        masked = list(command)
        masked[self.PASSWORD_INDEX] = mask_secret(self.settings.password)
        return " ".join(masked)

    def import_json(self, file_path: str) -> bool:
        """
        Imports one JSON array file. The import is all-or-nothing per
        file as far as this code is concerned.

        Returns:
            bool: True when mongoimport exits with status 0.

        Raises:
            ImportCommandError: If mongoimport cannot be started, times out
                                or exits with a non-zero status.
        """
        command = self.build_command(file_path)
        logger.info("Running: %s", self._loggable_command(command))
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.error("Could not run %s for %s: %s", self.executable, file_path, e)
            raise ImportCommandError(
                f"Could not run {self.executable} for {file_path}: {e}",
                file_path=file_path,
            ) from e

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            logger.error(
                "%s failed for %s (exit %d): %s",
                self.executable,
                file_path,
                completed.returncode,
                stderr,
            )
            raise ImportCommandError(
                f"{self.executable} exited with status {completed.returncode} "
                f"for {file_path}",
                file_path=file_path,
                returncode=completed.returncode,
                stderr=stderr,
            )

        # mongoimport reports its progress and document count on stderr
        if completed.stderr:
            logger.debug(completed.stderr.strip())
        logger.info("import success: %s", file_path)
        return True

    def import_directory(
        self,
        dir_path: str,
        extension_name: str=DEFAULT_EXTENSION,
        completed_dir: Optional[str]=None,
        overwrite: bool=False,
    ) -> List[str]:
        """
        Imports every matching file under `dir_path`, one at a time, and
        moves each one into `completed_dir` after it succeeds.

        Files already inside `completed_dir` are skipped. A file whose name
        is already taken in `completed_dir` is refused before it is imported,
        unless `overwrite` is set. The first failure stops the run; files
        imported before it have already been moved.

        Args:
            dir_path (str): Directory to scan recursively.
            extension_name (str): Extension of the files to import.
            completed_dir (Optional[str]): Where imported files go. Defaults
                                           to `<dir_path>/completed_data`.
            overwrite (bool): Replace same-named files in `completed_dir`.

        Returns:
            List[str]: New paths of the imported files.

        Raises:
            FileExistsError: If a same-named file is already in
                             `completed_dir` and `overwrite` is False.
            ImportCommandError: If mongoimport fails for a file.
        """
        if completed_dir is None:
            completed_dir = os.path.join(dir_path, COMPLETED_DIR_NAME)
        completed_root = os.path.abspath(completed_dir)

        moved = []
        for file_path in get_file_paths(dir_path, extension_name):
            if _is_within(file_path, completed_root):
                continue
            target = os.path.join(completed_dir, os.path.basename(file_path))
            if os.path.exists(target) and not overwrite:
                logger.error("%s is already in %s, not importing it again", file_path, completed_dir)
                raise FileExistsError(f"Destination already exists: {target}")
            if self.import_json(file_path):
                moved.append(move_file(file_path, completed_dir, overwrite=overwrite))

        logger.info(
            "Imported %d file(s) from %s into %s.%s",
            len(moved),
            dir_path,
            self.settings.database_name,
            self.settings.collection_name,
        )
        return moved


def _is_within(path: str, directory: str) -> bool:
    path = os.path.abspath(path)
    return os.path.commonpath([path, directory]) == directory
