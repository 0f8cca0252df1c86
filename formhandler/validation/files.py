"""
FormHandler File Validation
===========================

Validation of uploaded files:
- Upload error codes
- Size limits
- Content sniffing against the claimed extension
- Extension allow-lists per file family
- Moving accepted files to a content addressed name
"""

from __future__ import annotations

import hashlib
import os
import shutil
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from formhandler.exceptions import DirectoryNotFoundError, FileMoveError
from formhandler.utils.logger import Logger, get_logger
from formhandler.validation.limits import LimitComparator, LimitKind
from formhandler.validation.types import FieldType


# =============================================================================
# Upload Records
# =============================================================================

class UploadError(IntEnum):
    """Upload status codes as reported by the web server."""

    OK = 0
    INI_SIZE = 1
    FORM_SIZE = 2
    PARTIAL = 3
    NO_FILE = 4
    NO_TMP_DIR = 6
    CANT_WRITE = 7
    EXTENSION = 8


UPLOAD_ERROR_MESSAGES: Dict[int, str] = {
    UploadError.INI_SIZE: "File size exceeds upload_max_filesize ini directive",
    UploadError.FORM_SIZE: "File size exceeds max_file_size html form directive",
    UploadError.PARTIAL: "File was only partially uploaded",
    UploadError.NO_FILE: "No file upload found",
    UploadError.NO_TMP_DIR: "No temp folder found for file storage",
    UploadError.CANT_WRITE: "Permission denied while writing file to disk",
    UploadError.EXTENSION: "Some loaded extensions aborted file processing",
}

UNKNOWN_UPLOAD_ERROR = "Unknown file upload error"

RECORD_KEYS = ("name", "type", "size", "tmp_name", "error")


@dataclass
class UploadedFile:
    """
    Metadata of one uploaded file.

    Attributes:
        name: Client side file name
        type: Client reported MIME type (not trusted)
        size: Size in bytes
        tmp_name: Path of the temporary file on disk
        error: Upload status code
    """

    name: str = ""
    type: str = ""
    size: int = 0
    tmp_name: str = ""
    error: int = UploadError.OK

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "UploadedFile":
        """Create from a ``name/type/size/tmp_name/error`` mapping."""
        try:
            error = int(data.get("error", UploadError.OK) or 0)
        except (TypeError, ValueError):
            error = -1
        try:
            size = int(data.get("size") or 0)
        except (TypeError, ValueError):
            size = 0
        return cls(
            name=str(data.get("name") or ""),
            type=str(data.get("type") or ""),
            size=size,
            tmp_name=str(data.get("tmp_name") or ""),
            error=error,
        )

    @property
    def extension(self) -> str:
        """Lower-cased extension of the client file name, without the dot."""
        return os.path.splitext(self.name)[1].lstrip(".").lower()


def is_upload_record(value: Any) -> bool:
    """Check if a source value describes uploaded files."""
    if isinstance(value, UploadedFile):
        return True
    if isinstance(value, Mapping):
        return "tmp_name" in value and "name" in value
    if isinstance(value, (list, tuple)) and value:
        return all(is_upload_record(item) for item in value)
    return False


def normalize_uploads(record: Any) -> List[UploadedFile]:
    """
    Turn a file record into a list of uploads.

    Accepts a single record, a list of records, or a record whose
    entries are parallel lists (one element per upload).
    """
    if record is None:
        return []

    if isinstance(record, UploadedFile):
        return [record]

    if isinstance(record, (list, tuple)):
        uploads: List[UploadedFile] = []
        for item in record:
            uploads.extend(normalize_uploads(item))
        return uploads

    if isinstance(record, Mapping):
        if isinstance(record.get("name"), (list, tuple)):
            count = len(record["name"])
            return [
                UploadedFile.from_mapping({
                    key: _nth(record.get(key), index) for key in RECORD_KEYS
                })
                for index in range(count)
            ]
        return [UploadedFile.from_mapping(record)]

    return []


def _nth(values: Any, index: int) -> Any:
    if isinstance(values, (list, tuple)):
        return values[index] if index < len(values) else None
    return values


# =============================================================================
# Content Sniffing
# =============================================================================

SNIFF_BYTES = 512

# (offset, signature, mime)
_SIGNATURES: Tuple[Tuple[int, bytes, str], ...] = (
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"II*\x00", "image/tiff"),
    (0, b"MM\x00*", "image/tiff"),
    (0, b"\x00\x00\x01\x00", "image/x-icon"),
    (0, b"%PDF-", "application/pdf"),
    (0, b"{\\rtf", "application/rtf"),
    (0, b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1", "application/x-ole-storage"),
    (0, b"PK\x03\x04", "application/zip"),
    (0, b"PK\x05\x06", "application/zip"),
    (0, b"\x1f\x8b", "application/gzip"),
    (0, b"BZh", "application/x-bzip2"),
    (0, b"7z\xbc\xaf\x27\x1c", "application/x-7z-compressed"),
    (0, b"Rar!\x1a\x07", "application/x-rar"),
    (257, b"ustar", "application/x-tar"),
    (0, b"ID3", "audio/mpeg"),
    (0, b"\xff\xfb", "audio/mpeg"),
    (0, b"\xff\xf3", "audio/mpeg"),
    (0, b"\xff\xf2", "audio/mpeg"),
    (0, b"OggS", "audio/ogg"),
    (0, b"fLaC", "audio/flac"),
    (0, b"FLV\x01", "video/x-flv"),
    (0, b"\x30\x26\xb2\x75\x8e\x66\xcf\x11", "video/x-ms-asf"),
    (0, b"BM", "image/bmp"),
)

_RIFF_FORMS: Dict[bytes, str] = {
    b"WEBP": "image/webp",
    b"WAVE": "audio/wav",
    b"AVI ": "video/x-msvideo",
}

_FTYP_BRANDS: Dict[bytes, str] = {
    b"M4A ": "audio/mp4",
    b"M4B ": "audio/mp4",
    b"qt  ": "video/quicktime",
    b"3gp4": "video/3gpp",
    b"3gp5": "video/3gpp",
    b"3g2a": "video/3gpp",
}

TEXT_MIME = "text/plain"
EMPTY_MIME = "application/x-empty"
BINARY_MIME = "application/octet-stream"


def sniff_bytes(head: bytes) -> str:
    """
    Detect MIME type from the leading bytes of a file.

    Example:
        >>> sniff_bytes(b"\\x89PNG\\r\\n\\x1a\\n...")
        'image/png'
    """
    if not head:
        return EMPTY_MIME

    if head[:4] == b"RIFF" and head[8:12] in _RIFF_FORMS:
        return _RIFF_FORMS[head[8:12]]

    if head[4:8] == b"ftyp":
        brand = head[8:12]
        if brand in _FTYP_BRANDS:
            return _FTYP_BRANDS[brand]
        return "video/mp4"

    if head[:4] == b"\x1a\x45\xdf\xa3":
        return "video/webm" if b"webm" in head else "video/x-matroska"

    for offset, signature, mime in _SIGNATURES:
        if head[offset:offset + len(signature)] == signature:
            return mime

    if _is_text(head):
        return TEXT_MIME

    return BINARY_MIME


def sniff_mime(path: str) -> str:
    """Detect MIME type of a file on disk."""
    with open(path, "rb") as handle:
        return sniff_bytes(handle.read(SNIFF_BYTES))


def _is_text(head: bytes) -> bool:
    if b"\x00" in head:
        return False
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as exc:
        # A multi-byte character cut off by the read size
        return exc.reason == "unexpected end of data" and exc.start >= len(head) - 3
    return True


# =============================================================================
# Extension Tables
# =============================================================================

# Extension -> sniffed types accepted for it
EXTENSION_MIMES: Dict[str, FrozenSet[str]] = {
    "jpg": frozenset({"image/jpeg"}),
    "jpeg": frozenset({"image/jpeg"}),
    "png": frozenset({"image/png"}),
    "gif": frozenset({"image/gif"}),
    "bmp": frozenset({"image/bmp"}),
    "webp": frozenset({"image/webp"}),
    "tiff": frozenset({"image/tiff"}),
    "tif": frozenset({"image/tiff"}),
    "ico": frozenset({"image/x-icon"}),
    "mp3": frozenset({"audio/mpeg"}),
    "wav": frozenset({"audio/wav"}),
    "ogg": frozenset({"audio/ogg"}),
    "flac": frozenset({"audio/flac"}),
    "m4a": frozenset({"audio/mp4", "video/mp4"}),
    "wma": frozenset({"video/x-ms-asf"}),
    "mp4": frozenset({"video/mp4", "audio/mp4"}),
    "mov": frozenset({"video/quicktime", "video/mp4"}),
    "avi": frozenset({"video/x-msvideo"}),
    "mkv": frozenset({"video/x-matroska", "video/webm"}),
    "webm": frozenset({"video/webm", "video/x-matroska"}),
    "flv": frozenset({"video/x-flv"}),
    "wmv": frozenset({"video/x-ms-asf"}),
    "3gp": frozenset({"video/3gpp", "video/mp4"}),
    "pdf": frozenset({"application/pdf"}),
    "doc": frozenset({"application/x-ole-storage"}),
    "xls": frozenset({"application/x-ole-storage"}),
    "ppt": frozenset({"application/x-ole-storage"}),
    "docx": frozenset({"application/zip"}),
    "xlsx": frozenset({"application/zip"}),
    "pptx": frozenset({"application/zip"}),
    "odt": frozenset({"application/zip"}),
    "ods": frozenset({"application/zip"}),
    "odp": frozenset({"application/zip"}),
    "rtf": frozenset({"application/rtf"}),
    "txt": frozenset({TEXT_MIME, EMPTY_MIME}),
    "csv": frozenset({TEXT_MIME, EMPTY_MIME}),
    "zip": frozenset({"application/zip"}),
    "tar": frozenset({"application/x-tar"}),
    "gz": frozenset({"application/gzip"}),
    "tgz": frozenset({"application/gzip"}),
    "bz2": frozenset({"application/x-bzip2"}),
    "7z": frozenset({"application/x-7z-compressed"}),
    "rar": frozenset({"application/x-rar"}),
}

# Sniffed type -> extension given to files uploaded without one
MIME_EXTENSIONS: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/bmp": "bmp",
    "image/webp": "webp",
    "image/tiff": "tiff",
    "image/x-icon": "ico",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/ogg": "ogg",
    "audio/flac": "flac",
    "audio/mp4": "m4a",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/x-msvideo": "avi",
    "video/x-matroska": "mkv",
    "video/webm": "webm",
    "video/x-flv": "flv",
    "video/x-ms-asf": "wmv",
    "video/3gpp": "3gp",
    "application/pdf": "pdf",
    "application/rtf": "rtf",
    "application/x-ole-storage": "doc",
    "application/zip": "zip",
    "application/gzip": "gz",
    "application/x-bzip2": "bz2",
    "application/x-7z-compressed": "7z",
    "application/x-rar": "rar",
    "application/x-tar": "tar",
    TEXT_MIME: "txt",
}

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "bmp", "webp", "tiff", "tif", "ico")
AUDIO_EXTENSIONS = ("mp3", "wav", "ogg", "flac", "m4a", "wma")
VIDEO_EXTENSIONS = ("mp4", "mov", "avi", "mkv", "webm", "flv", "wmv", "3gp")
DOCUMENT_EXTENSIONS = (
    "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "odt", "ods", "odp", "rtf",
)
ARCHIVE_EXTENSIONS = ("zip", "tar", "gz", "tgz", "bz2", "7z", "rar")

FAMILY_EXTENSIONS: Dict[FieldType, Tuple[str, ...]] = {
    FieldType.IMAGE: IMAGE_EXTENSIONS,
    FieldType.AUDIO: AUDIO_EXTENSIONS,
    FieldType.VIDEO: VIDEO_EXTENSIONS,
    FieldType.MEDIA: IMAGE_EXTENSIONS + AUDIO_EXTENSIONS + VIDEO_EXTENSIONS,
    FieldType.DOCUMENT: DOCUMENT_EXTENSIONS,
    FieldType.ARCHIVE: ARCHIVE_EXTENSIONS,
}

_EQUIVALENT_EXTENSIONS: Dict[str, str] = {
    "jpeg": "jpg",
    "tif": "tiff",
}


def canonical_extension(extension: str) -> str:
    """Normalize an extension for allow-list comparison."""
    extension = str(extension).strip().lstrip(".").lower()
    return _EQUIVALENT_EXTENSIONS.get(extension, extension)


def allowed_extensions(
    family: FieldType,
    mimes: Any = None,
) -> Optional[FrozenSet[str]]:
    """
    Get the accepted extensions for a field.

    Args:
        family: File field type
        mimes: Explicit allow-list option, overrides the family

    Returns:
        Canonical extensions, or None when any extension is accepted
    """
    if mimes:
        if isinstance(mimes, str):
            mimes = [mimes]
        return frozenset(canonical_extension(item) for item in mimes)

    extensions = FAMILY_EXTENSIONS.get(family)
    if extensions is None:
        return None
    return frozenset(canonical_extension(item) for item in extensions)


# =============================================================================
# File Validator
# =============================================================================

@dataclass
class FileCheckResult:
    """Outcome of checking one upload."""

    error: Optional[str] = None
    moved_name: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FileValidator:
    """
    Checks one uploaded file against a field's options.

    Example:
        file_validator = FileValidator()
        upload = UploadedFile(name="me.png", size=2048, tmp_name="/tmp/upload-123")

        result = file_validator.check("avatar", upload, FieldType.IMAGE, {
            "max": "2mb",
            "moveTo": "/var/uploads",
        })
        if result.ok:
            print(result.moved_name)    # "3b5d....png"
    """

    def __init__(
        self,
        limits: Optional[LimitComparator] = None,
        hash_algorithm: str = "md5",
        chunk_size: int = 65536,
        logger: Optional[Logger] = None,
    ) -> None:
        self.logger = logger or get_logger()
        self.limits = limits or LimitComparator(self.logger)
        self.hash_algorithm = hash_algorithm
        self.chunk_size = chunk_size

    def check(
        self,
        field: str,
        upload: Optional[UploadedFile],
        family: FieldType,
        options: Optional[Mapping[str, Any]] = None,
    ) -> FileCheckResult:
        """
        Validate an upload and move it when asked to.

        Raises:
            DirectoryNotFoundError: ``moveTo`` directory does not exist
            FileMoveError: The file could not be moved
        """
        options = options or {}

        if upload is None:
            return FileCheckResult(UPLOAD_ERROR_MESSAGES[UploadError.NO_FILE])

        if upload.error != UploadError.OK:
            return FileCheckResult(
                UPLOAD_ERROR_MESSAGES.get(upload.error, UNKNOWN_UPLOAD_ERROR)
            )

        size = upload.size or self._disk_size(upload.tmp_name)
        error = self.limits.check(
            field, size, options, LimitKind.SIZE, upload.name, unit=" bytes"
        )
        if error:
            return FileCheckResult(error)

        mime = self._sniff(upload.tmp_name)
        extension = upload.extension

        accepted_mimes = EXTENSION_MIMES.get(extension)
        if accepted_mimes is not None and mime not in accepted_mimes:
            return FileCheckResult("File extension spoofing detected")

        if not extension:
            extension = MIME_EXTENSIONS.get(mime, "")

        allowed = allowed_extensions(family, options.get("mimes"))
        if allowed is not None and canonical_extension(extension) not in allowed:
            shown = f".{extension}" if extension else ""
            return FileCheckResult(f'"{shown}" file extension not accepted')

        move_to = options.get("moveTo")
        if move_to:
            return FileCheckResult(moved_name=self.move(field, upload, str(move_to), extension))

        return FileCheckResult()

    def move(
        self,
        field: str,
        upload: UploadedFile,
        directory: str,
        extension: str,
    ) -> str:
        """
        Move an upload to ``<directory>/<hash>.<extension>``.

        Returns:
            Stored file name
        """
        if not os.path.isdir(directory):
            raise DirectoryNotFoundError(
                f"{directory} is not a directory", field=field
            )

        try:
            digest = self.hash_file(upload.tmp_name)
            name = f"{digest}.{extension}" if extension else digest
            shutil.move(upload.tmp_name, os.path.join(directory, name))
        except OSError as exc:
            raise FileMoveError(
                f"Could not move {upload.name} to {directory}: {exc}", field=field
            ) from exc

        self.logger.info("Uploaded file moved", field=field, name=name)
        return name

    def hash_file(self, path: str) -> str:
        """Hash file content with the configured algorithm."""
        digest = hashlib.new(self.hash_algorithm)
        with open(path, "rb") as handle:
            for chunk in iter(lambda: handle.read(self.chunk_size), b""):
                digest.update(chunk)
        return digest.hexdigest()

    def _sniff(self, path: str) -> str:
        try:
            return sniff_mime(path)
        except OSError:
            self.logger.warning("Uploaded file is not readable", path=path)
            return BINARY_MIME

    def _disk_size(self, path: str) -> int:
        try:
            return os.path.getsize(path)
        except OSError:
            return 0
