# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system helpers used to persist rendered configuration files.

ConfigFileWriter is the only component that touches configuration files on
disk. Configurators receive it as a collaborator, so the rendering code can be
exercised against a temporary directory through StagingFileWriter.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from ipxe_setup.config_models import AppSettings
from ipxe_setup.errors import ConfigWriteError

from .command_utils import get_symbols, log_map_server

module_logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"

PathLike = Union[str, Path]


class ConfigFileWriter:
    """
    Reads, writes and backs up files addressed by their absolute host path.

    Every host path is resolved below ``root``; with the default root of "/"
    the writer operates on the live system.
    """

    def __init__(
        self,
        root: PathLike = "/",
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.root = Path(root)
        self.app_settings = app_settings
        self.logger = logger or module_logger
        self.symbols = get_symbols(app_settings)

    @property
    def is_live(self) -> bool:
        return self.root == Path("/")

    def resolve(self, path: PathLike) -> Path:
        host_path = Path(path)
        if not host_path.is_absolute():
            raise ConfigWriteError(f"Expected an absolute path, got '{path}'")
        return self.root / host_path.relative_to("/")

    def exists(self, path: PathLike) -> bool:
        return self.resolve(path).exists()

    def read(self, path: PathLike) -> str:
        """Returns the file's text, or an empty string if it does not exist."""
        target = self.resolve(path)
        if not target.is_file():
            return ""
        try:
            return target.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigWriteError(f"Could not read {target}: {e}") from e

    def ensure_directory(self, path: PathLike) -> Path:
        target = self.resolve(path)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigWriteError(f"Could not create directory {target}: {e}") from e
        return target

    def write(self, path: PathLike, content: str) -> Path:
        """
        Replaces the file with content.

        The new content is written to a temporary file in the same directory
        and moved into place, so a failed write never leaves a truncated file.
        An existing file keeps its permission bits.
        """
        target = self.resolve(path)
        self.ensure_directory(Path(path).parent)
        temp_path = ""
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                delete=False,
                dir=target.parent,
                prefix=f".{target.name}.",
                encoding="utf-8",
            ) as temp_f:
                temp_f.write(content)
                temp_path = temp_f.name
            if target.exists():
                shutil.copymode(target, temp_path)
            else:
                os.chmod(temp_path, 0o644)
            os.replace(temp_path, target)
        except OSError as e:
            if temp_path and os.path.exists(temp_path):
                os.unlink(temp_path)
            raise ConfigWriteError(f"Could not write {target}: {e}") from e

        log_map_server(
            f"{self.symbols.get('success', '✅')} Wrote {target}",
            "debug",
            self.logger,
            self.app_settings,
        )
        return target

    def append(self, path: PathLike, content: str) -> Path:
        target = self.resolve(path)
        self.write(path, self.read(path) + content)
        return target

    def copy_from_host(self, source: PathLike, destination: PathLike) -> Path:
        """Copies a file of the live system to destination below root."""
        source_path = Path(source)
        target = self.resolve(destination)
        if not source_path.is_file():
            raise ConfigWriteError(f"Source file {source_path} does not exist")
        self.ensure_directory(Path(destination).parent)
        try:
            shutil.copy2(source_path, target)
        except OSError as e:
            raise ConfigWriteError(f"Could not copy {source_path} to {target}: {e}") from e
        return target

    def backup_once(self, path: PathLike) -> Optional[Path]:
        """
        Saves ``<path>.bak`` unless a backup already exists.

        The first run keeps the pre-install file; later runs leave that
        backup untouched instead of replacing it with already generated
        content.

        Returns:
            The backup path, or None if there was nothing to back up.
        """
        source = self.resolve(path)
        backup_path = source.with_name(source.name + BACKUP_SUFFIX)

        if backup_path.exists():
            log_map_server(
                f"{self.symbols.get('info', 'ℹ️')} Keeping existing backup {backup_path}",
                "info",
                self.logger,
                self.app_settings,
            )
            return backup_path

        if not source.is_file():
            log_map_server(
                f"{self.symbols.get('info', 'ℹ️')} File {source} does not exist or is not a regular file. No backup needed.",
                "info",
                self.logger,
                self.app_settings,
            )
            return None

        try:
            shutil.copy2(source, backup_path)
        except OSError as e:
            raise ConfigWriteError(f"Failed to backup {source} to {backup_path}: {e}") from e

        log_map_server(
            f"{self.symbols.get('success', '✅')} Backed up {source} to {backup_path}",
            "success",
            self.logger,
            self.app_settings,
        )
        return backup_path


class StagingFileWriter(ConfigFileWriter):
    """A ConfigFileWriter that writes below a staging directory instead of "/"."""

    def __init__(
        self,
        root: PathLike,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if Path(root) == Path("/"):
            raise ConfigWriteError("A staging directory cannot be the filesystem root")
        super().__init__(root, app_settings, logger)
        self.root.mkdir(parents=True, exist_ok=True)


def set_shell_variable(document: str, name: str, value: str) -> str:
    """
    Sets ``NAME="value"`` in a shell-style defaults file such as
    /etc/default/tftpd-hpa.

    Every existing assignment of name (commented-out ones excluded) is
    replaced; if there is none, the assignment is appended. All other lines
    are kept verbatim.
    """
    if '"' in value or "\\" in value or "$" in value or "`" in value or "\n" in value:
        raise ConfigWriteError(
            f"Value {value!r} for {name} contains characters that cannot be quoted safely"
        )
    assignment = f'{name}="{value}"'
    lines = document.splitlines()
    replaced = False
    for index, line in enumerate(lines):
        if line.strip().startswith(f"{name}="):
            lines[index] = assignment
            replaced = True
    if not replaced:
        lines.append(assignment)
    return "\n".join(lines) + "\n"
