"""
Data models for the Dropbox v1 SDK.

This module defines the structures decoded from API responses. Each model
builds from the decoded JSON with ``from_dict`` and serializes back with
``to_dict`` using the API's own field names and timestamp format.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from .exceptions import DecodeError

# Wire names are always English, whatever the process locale
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# RFC 1123 with a numeric zone, e.g. "Sat, 21 Aug 2010 22:31:20 +0000"
TIMESTAMP_PATTERN = re.compile(
    r"(?:%s), (\d{2}) (%s) (\d{4}) (\d{2}):(\d{2}):(\d{2}) ([+-])(\d{2})(\d{2})"
    % ("|".join(DAY_NAMES), "|".join(MONTH_NAMES))
)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an API timestamp.

    Raises:
        DecodeError: If the string does not match the API format
    """
    if not isinstance(value, str):
        raise DecodeError(f"Timestamp must be a string, got {type(value).__name__}")
    match = TIMESTAMP_PATTERN.fullmatch(value)
    if match is None:
        raise DecodeError(f"Invalid timestamp {value!r}")

    day, month, year, hour, minute, second, sign, zone_hours, zone_minutes = match.groups()
    offset = timedelta(hours=int(zone_hours), minutes=int(zone_minutes))
    try:
        return datetime(
            int(year), MONTH_NAMES.index(month) + 1, int(day),
            int(hour), int(minute), int(second),
            tzinfo=timezone(-offset if sign == "-" else offset),
        )
    except ValueError as e:
        raise DecodeError(f"Invalid timestamp {value!r}: {e}") from e


def format_timestamp(value: datetime) -> str:
    """Format a datetime in the API timestamp format. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    offset_minutes = int(value.utcoffset().total_seconds()) // 60
    sign = "-" if offset_minutes < 0 else "+"
    zone_hours, zone_minutes = divmod(abs(offset_minutes), 60)
    return (
        f"{DAY_NAMES[value.weekday()]}, {value.day:02d} {MONTH_NAMES[value.month - 1]} {value.year:04d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d} {sign}{zone_hours:02d}{zone_minutes:02d}"
    )


def _optional_timestamp(data: Dict[str, Any], key: str) -> Optional[datetime]:
    if data.get(key):
        return parse_timestamp(data[key])
    return None


def _require_dict(data: Any, kind: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object for {kind}, got {type(data).__name__}")
    return data


@dataclass
class Metadata:
    """Metadata for a file or folder."""

    path: str
    size: str = ""
    bytes: int = 0
    hash: str = ""
    rev: str = ""
    revision: int = 0
    is_dir: bool = False
    is_deleted: bool = False
    thumb_exists: bool = False
    icon: str = ""
    root: str = ""
    mime_type: str = ""
    modified: Optional[datetime] = None
    client_mtime: Optional[datetime] = None
    contents: List["Metadata"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Metadata":
        """Create Metadata from API response dictionary."""
        data = _require_dict(data, "metadata")
        try:
            return cls(
                path=data.get("path", ""),
                size=data.get("size", ""),
                bytes=int(data.get("bytes", 0)),
                hash=data.get("hash", ""),
                rev=data.get("rev", ""),
                revision=int(data.get("revision", 0)),
                is_dir=bool(data.get("is_dir", False)),
                is_deleted=bool(data.get("is_deleted", False)),
                thumb_exists=bool(data.get("thumb_exists", False)),
                icon=data.get("icon", ""),
                root=data.get("root", ""),
                mime_type=data.get("mime_type", ""),
                modified=_optional_timestamp(data, "modified"),
                client_mtime=_optional_timestamp(data, "client_mtime"),
                contents=[cls.from_dict(child) for child in data.get("contents") or []],
            )
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Invalid metadata: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert Metadata to the API's dictionary form."""
        result = {
            "path": self.path,
            "size": self.size,
            "bytes": self.bytes,
            "hash": self.hash,
            "rev": self.rev,
            "revision": self.revision,
            "is_dir": self.is_dir,
            "thumb_exists": self.thumb_exists,
            "icon": self.icon,
            "root": self.root,
            "mime_type": self.mime_type,
        }

        if self.is_deleted:
            result["is_deleted"] = True
        if self.modified:
            result["modified"] = format_timestamp(self.modified)
        if self.client_mtime:
            result["client_mtime"] = format_timestamp(self.client_mtime)
        if self.contents:
            result["contents"] = [child.to_dict() for child in self.contents]

        return result

    @property
    def name(self) -> str:
        """Last path component."""
        return self.path.rstrip("/").rsplit("/", 1)[-1]


@dataclass
class Entry:
    """
    One change in a delta: a path and its new metadata.

    ``metadata`` is None when the path was deleted. On the wire an entry is
    a two element array ``[path, metadata-or-null]``, not an object.
    """

    path: str
    metadata: Optional[Metadata] = None

    @property
    def is_deleted(self) -> bool:
        return self.metadata is None

    @classmethod
    def from_json(cls, data: Any) -> "Entry":
        if not isinstance(data, list) or len(data) != 2:
            raise DecodeError(f"Delta entry must be a [path, metadata] pair, got {data!r}")
        path, meta = data
        if not isinstance(path, str):
            raise DecodeError(f"Delta entry path must be a string, got {type(path).__name__}")
        return cls(path=path, metadata=Metadata.from_dict(meta) if meta is not None else None)

    def to_json(self) -> List[Any]:
        return [self.path, self.metadata.to_dict() if self.metadata is not None else None]


@dataclass
class Delta:
    """A page of changes. When ``reset`` is set, previously synced state must be discarded."""

    entries: List[Entry] = field(default_factory=list)
    reset: bool = False
    cursor: str = ""
    has_more: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Delta":
        data = _require_dict(data, "delta")
        return cls(
            entries=[Entry.from_json(entry) for entry in data.get("entries") or []],
            reset=bool(data.get("reset", False)),
            cursor=data.get("cursor", ""),
            has_more=bool(data.get("has_more", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [entry.to_json() for entry in self.entries],
            "reset": self.reset,
            "cursor": self.cursor,
            "has_more": self.has_more,
        }


@dataclass
class Share:
    """A URL giving unauthenticated access to a file, valid until ``expires``."""

    url: str
    expires: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Share":
        data = _require_dict(data, "share")
        if "url" not in data:
            raise DecodeError("Share response is missing 'url'")
        return cls(url=data["url"], expires=_optional_timestamp(data, "expires"))

    def to_dict(self) -> Dict[str, Any]:
        result = {"url": self.url}
        if self.expires:
            result["expires"] = format_timestamp(self.expires)
        return result

    @property
    def is_expired(self) -> bool:
        """Check if the link has expired."""
        if self.expires is None:
            return False
        return datetime.now(timezone.utc) > self.expires


@dataclass
class CopyRef:
    """A reference that lets another account copy a file without transferring it."""

    copy_ref: str
    expires: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CopyRef":
        data = _require_dict(data, "copy reference")
        if "copy_ref" not in data:
            raise DecodeError("Copy reference response is missing 'copy_ref'")
        return cls(copy_ref=data["copy_ref"], expires=_optional_timestamp(data, "expires"))

    def to_dict(self) -> Dict[str, Any]:
        result = {"copy_ref": self.copy_ref}
        if self.expires:
            result["expires"] = format_timestamp(self.expires)
        return result


@dataclass
class QuotaInfo:
    """Storage usage in bytes."""

    shared: int = 0
    quota: int = 0
    normal: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuotaInfo":
        data = _require_dict(data, "quota info")
        return cls(
            shared=int(data.get("shared", 0)),
            quota=int(data.get("quota", 0)),
            normal=int(data.get("normal", 0)),
        )

    @property
    def used(self) -> int:
        return self.shared + self.normal

    @property
    def usage_percentage(self) -> Optional[float]:
        """Quota usage as percentage."""
        if not self.quota:
            return None
        return (self.used / self.quota) * 100


@dataclass
class AccountInfo:
    """The authorized user's account."""

    uid: int
    display_name: str = ""
    country: str = ""
    referral_link: str = ""
    quota_info: QuotaInfo = field(default_factory=QuotaInfo)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountInfo":
        data = _require_dict(data, "account info")
        try:
            return cls(
                uid=int(data.get("uid", 0)),
                display_name=data.get("display_name", ""),
                country=data.get("country", ""),
                referral_link=data.get("referral_link", ""),
                quota_info=QuotaInfo.from_dict(data.get("quota_info") or {}),
            )
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Invalid account info: {e}") from e


@dataclass
class ChunkedUpload:
    """Server-side state of a chunked upload."""

    upload_id: str = ""
    offset: int = 0
    expires: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChunkedUpload":
        data = _require_dict(data, "chunked upload")
        try:
            return cls(
                upload_id=data.get("upload_id", ""),
                offset=int(data.get("offset", 0)),
                expires=_optional_timestamp(data, "expires"),
            )
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Invalid chunked upload state: {e}") from e
