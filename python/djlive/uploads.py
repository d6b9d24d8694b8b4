"""
File upload support for djlive.

Follows the Phoenix LiveView upload flow:
- allow_upload() declares a named upload config during mount or an event
- the client selects files; entries arrive with a form event or allow_upload
- each entry joins its own ``lvu:`` topic and streams binary chunks
- consume_uploaded_entries() hands completed temp files to view code

Usage:
    class ProfileView(LiveView):
        def mount(self, ctx, event):
            ctx.allow_upload('avatar', accept=['.jpg', '.png'],
                             max_entries=1, max_file_size=5_000_000)

        def handle_event(self, ctx, event):
            if event['type'] == 'save':
                self.paths = ctx.consume_uploaded_entries(
                    'avatar', lambda path, entry: shutil.copy(path, MEDIA / entry.name)
                )
"""

import logging
import mimetypes
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Set, Union

from django.core import signing

from .config import config as djlive_config
from .exceptions import UploadInProgressError
from .security import sanitize_for_log

logger = logging.getLogger(__name__)

# Extension to MIME type mapping
EXT_TO_MIME: Dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".mp4": "video/mp4",
    ".mp3": "audio/mpeg",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".json": "application/json",
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
}

ERROR_TOO_LARGE = "Too large"
ERROR_NOT_ALLOWED = "Not allowed"
ERROR_TOO_MANY_FILES = "Too many files"


def mimes_for_accept(item: str) -> Set[str]:
    """MIME types matched by one accept entry (an extension or a MIME type)."""
    item = item.strip().lower()
    if item.startswith("."):
        mimes = set()
        known = EXT_TO_MIME.get(item)
        if known:
            mimes.add(known)
        guessed, _ = mimetypes.guess_type(f"file{item}", strict=False)
        if guessed:
            mimes.add(guessed)
        return mimes
    return {item}


def _mime_matches(accepted: str, mime_type: str) -> bool:
    if accepted == mime_type:
        return True
    if accepted.endswith("/*"):
        return mime_type.startswith(accepted[:-1])
    return False


@dataclass
class UploadEntry:
    """
    One file selected on the client.

    The client-supplied metadata is fixed at creation; progress, done and
    the temp file are driven by the upload sub-protocol only.
    """

    ref: str
    upload_ref: str
    name: str
    size: int
    type: str
    last_modified: Optional[int] = None
    cancelled: bool = False
    done: bool = False
    preflighted: bool = False
    progress: int = 0
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))
    meta: Optional[Dict[str, Any]] = None
    _temp_path: Optional[str] = field(default=None, repr=False)
    _received: int = field(default=0, repr=False)

    @classmethod
    def from_client(cls, upload: Dict[str, Any], config: "UploadConfig") -> "UploadEntry":
        """Build and validate an entry from the client's file metadata."""
        entry = cls(
            ref=str(upload.get("ref")),
            upload_ref=config.ref,
            name=upload.get("name", ""),
            size=int(upload.get("size") or 0),
            type=upload.get("type", ""),
            last_modified=upload.get("last_modified"),
        )
        entry.validate(config)
        return entry

    def validate(self, config: "UploadConfig") -> bool:
        """Record size and type violations in ``errors``; never raises."""
        self.errors = []
        if self.size > config.max_file_size:
            self.errors.append(ERROR_TOO_LARGE)
        if config.accept:
            allowed = any(
                _mime_matches(mime, self.type)
                for item in config.accept
                for mime in mimes_for_accept(item)
            )
            if not allowed:
                self.errors.append(ERROR_NOT_ALLOWED)
        self.valid = not self.errors
        return self.valid

    def update_progress(self, progress: int) -> None:
        progress = max(0, min(100, int(progress)))
        self.progress = progress
        self.preflighted = progress > 0
        self.done = progress == 100

    def append_chunk(self, data: bytes, directory: Optional[str] = None) -> int:
        """
        Append a binary chunk to the entry's temp file.

        Returns:
            Progress derived from the bytes received so far
        """
        if self._temp_path is None:
            self._temp_path = os.path.join(directory or djlive_config.upload_dir(), self.uuid)
        with open(self._temp_path, "ab") as f:
            f.write(data)
        self._received += len(data)
        if self.size <= 0:
            return 100
        return min(100, max(1, self._received * 100 // self.size))

    @property
    def temp_path(self) -> Optional[str]:
        return self._temp_path

    @property
    def data(self) -> bytes:
        """Uploaded bytes, empty until the entry is done."""
        if not self.done or not self._temp_path:
            return b""
        with open(self._temp_path, "rb") as f:
            return f.read()

    def cleanup(self) -> None:
        """Remove temp file."""
        if self._temp_path and os.path.exists(self._temp_path):
            try:
                os.unlink(self._temp_path)
            except OSError as e:
                logger.warning("Could not remove upload temp file %s: %s", self._temp_path, e)
        self._temp_path = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "ref": self.ref,
            "upload_ref": self.upload_ref,
            "name": self.name,
            "size": self.size,
            "type": self.type,
            "last_modified": self.last_modified,
            "cancelled": self.cancelled,
            "done": self.done,
            "preflighted": self.preflighted,
            "progress": self.progress,
            "valid": self.valid,
            "errors": list(self.errors),
            "uuid": self.uuid,
        }


# (entry metadata) -> {"uploader": ..., "url": ..., "fields": {...}}
ExternalUploader = Callable[[Dict[str, Any]], Dict[str, Any]]


@dataclass
class UploadConfig:
    """Configuration for an upload slot and its current entries."""

    name: str
    accept: Union[List[str], str] = field(default_factory=list)
    max_entries: int = 1
    max_file_size: int = field(default_factory=lambda: djlive_config.get("upload_max_file_size"))
    chunk_size: int = field(default_factory=lambda: djlive_config.get("upload_chunk_size"))
    auto_upload: bool = False
    external: Optional[ExternalUploader] = field(default=None, repr=False)
    ref: str = field(default_factory=lambda: f"phx-{uuid.uuid4()}")
    entries: List[UploadEntry] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def __post_init__(self):
        # Accept either ".jpg,.png" or [".jpg", ".png"]
        if isinstance(self.accept, str):
            self.accept = [part.strip() for part in self.accept.split(",") if part.strip()]
        else:
            self.accept = list(self.accept)

    def set_entries(self, entries: List[UploadEntry]) -> None:
        """Replace the entries wholesale, cleaning up any dropped temp files."""
        kept = {id(entry) for entry in entries}
        for old in self.entries:
            if id(old) not in kept:
                old.cleanup()
        self.entries = list(entries)
        self.validate()

    def validate(self) -> bool:
        self.errors = []
        if len(self.entries) > self.max_entries:
            self.errors.append(ERROR_TOO_MANY_FILES)
        return not self.errors

    def find_entry(self, ref: str) -> Optional[UploadEntry]:
        for entry in self.entries:
            if entry.ref == ref:
                return entry
        return None

    def remove_entry(self, ref: str) -> None:
        entry = self.find_entry(ref)
        if entry is None:
            return
        entry.cancelled = True
        entry.cleanup()
        self.entries = [e for e in self.entries if e.ref != ref]
        self.validate()

    def consume_entries(self) -> List[UploadEntry]:
        entries = self.entries
        self.entries = []
        self.validate()
        return entries

    def cleanup(self) -> None:
        for entry in self.entries:
            entry.cleanup()

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "accept": ",".join(self.accept),
            "max_entries": self.max_entries,
            "max_file_size": self.max_file_size,
            "chunk_size": self.chunk_size,
            "auto_upload": self.auto_upload,
            "ref": self.ref,
            "entries": [entry.to_json() for entry in self.entries],
            "errors": list(self.errors),
        }


def sign_entry_token(config: UploadConfig, entry: UploadEntry) -> str:
    """Token the client presents when joining the entry's upload topic."""
    return signing.dumps(
        {"upload_ref": config.ref, "entry_ref": entry.ref, "uuid": entry.uuid},
        salt=djlive_config.get("upload_token_salt"),
    )


def verify_entry_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return signing.loads(token, salt=djlive_config.get("upload_token_salt"))
    except signing.BadSignature:
        logger.warning("Rejected upload token %s", sanitize_for_log(token))
        return None


class UploadedEntries(NamedTuple):
    completed: List[UploadEntry]
    in_progress: List[UploadEntry]


class UploadMixin:
    """
    Upload API for view contexts.

    Configs are keyed by name; the session looks them up by ref when the
    upload sub-protocol addresses them.
    """

    def _init_uploads(self) -> None:
        self.upload_configs: Dict[str, UploadConfig] = {}
        self.active_upload_ref: Optional[str] = None

    def allow_upload(self, name: str, **options) -> UploadConfig:
        """
        Configure a named upload slot.

        Args:
            name: Upload slot name
            **options: accept, max_entries, max_file_size, chunk_size,
                auto_upload, external

        Returns:
            UploadConfig object
        """
        upload_config = UploadConfig(name=name, **options)
        self.upload_configs[name] = upload_config
        return upload_config

    def upload_config_by_ref(self, ref: str) -> Optional[UploadConfig]:
        for upload_config in self.upload_configs.values():
            if upload_config.ref == ref:
                return upload_config
        return None

    def cancel_upload(self, name: str, ref: str) -> None:
        """Cancel a specific upload by ref."""
        upload_config = self.upload_configs.get(name)
        if upload_config is None:
            logger.warning("Upload config %s not found for cancel_upload", name)
            return
        upload_config.remove_entry(ref)

    def consume_uploaded_entries(self, name: str, fn: Callable[[str, UploadEntry], Any]) -> List[Any]:
        """
        Hand every completed entry's temp file to ``fn(path, entry)``.

        Temp files are removed once ``fn`` returns.

        Raises:
            UploadInProgressError: if any entry is still uploading
        """
        upload_config = self.upload_configs.get(name)
        if upload_config is None:
            logger.warning("Upload config %s not found for consume_uploaded_entries", name)
            return []
        if any(not entry.done for entry in upload_config.entries):
            raise UploadInProgressError(name)
        results = []
        for entry in upload_config.consume_entries():
            try:
                results.append(fn(entry.temp_path, entry))
            finally:
                entry.cleanup()
        return results

    def uploaded_entries(self, name: str) -> UploadedEntries:
        completed: List[UploadEntry] = []
        in_progress: List[UploadEntry] = []
        upload_config = self.upload_configs.get(name)
        if upload_config is None:
            logger.warning("Upload config %s not found for uploaded_entries", name)
        else:
            for entry in upload_config.entries:
                (completed if entry.done else in_progress).append(entry)
        return UploadedEntries(completed, in_progress)

    def _cleanup_uploads(self) -> None:
        """Clean up all uploads. Called on teardown."""
        for upload_config in self.upload_configs.values():
            upload_config.cleanup()
