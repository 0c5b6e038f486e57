"""
Secret file discovery and local file I/O.

Finds the files under a secrets root that should travel to the
repository, maps them to artifact names, and performs a cheap
plausibility check on known secret formats (certificates, PKCS#12
bundles, provisioning profiles, JSON).

The plausibility check is a heuristic, not a format validator: it looks
at the first bytes only.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Union

from . import ARTIFACT_SUFFIX
from .errors import FileSystemError, ValidationError
from .models import FileCheck

logger = logging.getLogger("gitsecrets.secret_files")

PathLike = Union[str, Path]

EXCLUDED_DIRS = {".git"}
EXCLUDED_NAMES = {".DS_Store", "Thumbs.db"}
ROOT_README = "README.md"

SNIFF_BYTES = 200

CERTIFICATE_EXTENSIONS = {".cer", ".crt"}
PKCS12_EXTENSIONS = {".p12", ".pfx"}
PROVISIONING_EXTENSIONS = {".mobileprovision", ".mobileprovisioning"}
JSON_EXTENSIONS = {".json"}

PEM_CERTIFICATE_MARKER = b"-----BEGIN CERTIFICATE-----"
DER_SEQUENCE_TAG = 0x30


def _is_certificate(content: bytes) -> bool:
    return PEM_CERTIFICATE_MARKER in content or content[0] == DER_SEQUENCE_TAG


def _is_pkcs12(content: bytes) -> bool:
    return content[0] == DER_SEQUENCE_TAG


def _is_provisioning_profile(content: bytes) -> bool:
    return b"<?xml" in content or b"<plist" in content or b"bplist" in content


def _is_json(content: bytes) -> bool:
    trimmed = content.strip()
    return (trimmed.startswith(b"{") and b"}" in trimmed) or (
        trimmed.startswith(b"[") and b"]" in trimmed
    )


_TYPE_CHECKS = (
    (CERTIFICATE_EXTENSIONS, _is_certificate),
    (PKCS12_EXTENSIONS, _is_pkcs12),
    (PROVISIONING_EXTENSIONS, _is_provisioning_profile),
    (JSON_EXTENSIONS, _is_json),
)


def content_matches_extension(content: bytes, extension: str) -> bool:
    """Sniff the leading bytes of a file against its extension.

    Args:
        content: First bytes of the file (up to SNIFF_BYTES).
        extension: File extension including the dot, any case.

    Returns:
        bool: False for empty content or framing that does not match a
        known extension; True for matching framing or unknown extensions.
    """
    if not content:
        return False
    extension = extension.lower()
    for extensions, check in _TYPE_CHECKS:
        if extension in extensions:
            matched = check(content)
            if not matched:
                logger.debug("Content does not look like a %s file", extension)
            return matched
    return True


class SecretFileIndex:
    """Discovers secret files and maps them to repository artifacts."""

    def collect(self, root: PathLike) -> list[Path]:
        """Collect every eligible secret file under ``root``.

        Skips ``.git`` contents, ``.enc`` artifacts, ``.DS_Store``,
        ``Thumbs.db`` and a ``README.md`` sitting directly in ``root``.

        Args:
            root: The local secrets directory.

        Returns:
            list[Path]: Files sorted by their relative path.

        Raises:
            FileSystemError: If ``root`` is missing or not readable.
        """
        root_path = Path(root)
        self._validate_directory_access(root_path)

        files: list[Path] = []
        try:
            for dirpath, dirnames, filenames in os.walk(root_path):
                dirnames[:] = [d for d in dirnames if d not in EXCLUDED_DIRS]
                current = Path(dirpath)
                for name in filenames:
                    path = current / name
                    if not path.is_file():
                        continue
                    if self._is_excluded(path, root_path):
                        continue
                    files.append(path)
        except OSError as exc:
            logger.error("Failed to scan %s: %s", root_path, exc)
            raise FileSystemError(f"failed to collect secret files: {exc}") from exc

        files.sort(key=lambda p: self.relative_path(p, root_path))
        logger.info("Found %d secret file(s) in %s", len(files), root_path)
        return files

    @staticmethod
    def _is_excluded(path: Path, root: Path) -> bool:
        relative = path.relative_to(root)
        if any(part in EXCLUDED_DIRS for part in relative.parts):
            return True
        if path.suffix.lower() == ARTIFACT_SUFFIX:
            return True
        if path.name in EXCLUDED_NAMES:
            return True
        return len(relative.parts) == 1 and path.name == ROOT_README

    @staticmethod
    def _validate_directory_access(root: Path) -> None:
        if not root.is_dir():
            raise FileSystemError(f"directory does not exist: {root}")
        if not os.access(root, os.R_OK | os.X_OK):
            raise FileSystemError(f"directory is not readable: {root}")

    @staticmethod
    def relative_path(file: PathLike, root: PathLike) -> str:
        """Path of ``file`` relative to ``root`` with POSIX separators."""
        return Path(os.path.relpath(file, root)).as_posix()

    @staticmethod
    def artifact_name(relative: str) -> str:
        """Repository artifact name for a relative plaintext path."""
        return f"{relative}{ARTIFACT_SUFFIX}"

    @staticmethod
    def plaintext_name(artifact: str) -> str:
        """Relative plaintext path for an artifact name."""
        if artifact.endswith(ARTIFACT_SUFFIX):
            return artifact[: -len(ARTIFACT_SUFFIX)]
        return artifact

    @staticmethod
    def validate_file_path(file_path: PathLike) -> None:
        """Reject empty paths and paths with parent-directory components.

        Raises:
            ValidationError: If the path is empty or contains ``..``.
        """
        if file_path is None or str(file_path) == "":
            raise ValidationError("file path must not be empty")
        if ".." in Path(file_path).parts:
            raise ValidationError(f"path contains unsafe components: {file_path}")

    @classmethod
    def resolve_inside(cls, root: PathLike, relative: str) -> Path:
        """Join a relative POSIX path onto ``root``, refusing to escape it.

        Raises:
            ValidationError: For empty, absolute, or escaping paths.
        """
        cls.validate_file_path(relative)
        posix = PurePosixPath(relative)
        if posix.is_absolute() or Path(relative).is_absolute():
            raise ValidationError(f"path must be relative: {relative}")
        root_path = Path(root)
        target = root_path.joinpath(*posix.parts)
        resolved_root = root_path.resolve()
        if not target.resolve().is_relative_to(resolved_root):
            raise ValidationError(f"path escapes {root_path}: {relative}")
        return target

    def ensure_directory(self, path: PathLike) -> None:
        """Create ``path`` (and parents) if it does not exist.

        Raises:
            FileSystemError: If the directory cannot be created.
        """
        path = Path(path)
        if path.is_dir():
            return
        logger.info("Creating directory: %s", path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Failed to create directory %s: %s", path, exc)
            raise FileSystemError(f"failed to create directory {path}: {exc}") from exc

    def read_file(self, path: PathLike) -> bytes:
        """Read a secret file as bytes.

        Raises:
            FileSystemError: If the file cannot be read.
        """
        try:
            content = Path(path).read_bytes()
        except OSError as exc:
            logger.error("Failed to read %s: %s", path, exc)
            raise FileSystemError(f"failed to read file {path}: {exc}") from exc
        logger.debug("Read %s (%d bytes)", path, len(content))
        return content

    def write_file(self, path: PathLike, content: bytes) -> None:
        """Write bytes to ``path``, creating parent directories.

        Raises:
            FileSystemError: If the file cannot be written.
        """
        path = Path(path)
        self.ensure_directory(path.parent)
        try:
            path.write_bytes(content)
        except OSError as exc:
            logger.error("Failed to write %s: %s", path, exc)
            raise FileSystemError(f"failed to write file {path}: {exc}") from exc
        logger.debug("Wrote %s (%d bytes)", path, len(content))

    def check_file(self, path: PathLike) -> bool:
        """Quick plausibility check; True if the file looks like its type."""
        return self.check_file_detailed(path).valid

    def check_file_detailed(self, path: PathLike) -> FileCheck:
        """Plausibility check with a breakdown of what passed.

        Args:
            path: Local secret file.

        Returns:
            FileCheck: ``valid`` only when the file exists, is readable,
            is non-empty and its leading bytes match its extension.
        """
        path = Path(path)
        result = FileCheck()
        try:
            result.exists = path.is_file()
            if not result.exists:
                return result

            result.size = path.stat().st_size
            result.non_empty = result.size > 0
            if not result.non_empty:
                return result

            with open(path, "rb") as f:
                head = f.read(SNIFF_BYTES)
            result.readable = True

            result.type_valid = content_matches_extension(head, path.suffix)
            result.valid = result.readable and result.non_empty and result.type_valid
        except OSError as exc:
            result.error = str(exc)
            logger.debug("File check failed for %s: %s", path, exc)
        return result
