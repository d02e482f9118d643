"""Image sources identified by URIs such as oci://, dir://, file:// and channel://."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote


class InvalidImageSource(ValueError):
    """The URI or image reference of a source is not valid."""


class SourceType(str, Enum):
    OCI = "oci"
    FILE = "file"
    DIR = "dir"
    CHANNEL = "channel"


_DOCKER_SCHEME = "docker"

_SCHEME = re.compile(r"([A-Za-z][A-Za-z0-9+.\-]*):")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

_ALNUM = r"[a-z0-9]+"
_SEPARATOR = r"(?:[._]|__|[-]*)"
_PATH_COMPONENT = rf"{_ALNUM}(?:{_SEPARATOR}{_ALNUM})*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN = rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?"
_NAME = rf"(?:{_DOMAIN}/)?{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*"
_TAG = r"[\w][\w.-]{0,127}"
_DIGEST = r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"
_REFERENCE = re.compile(rf"({_NAME})(?::({_TAG}))?(?:@({_DIGEST}))?", re.ASCII)
_IDENTIFIER = re.compile(r"[a-f0-9]{64}")
_NAME_MAX_LENGTH = 255


def _unescape(text: str) -> str:
    if _BAD_ESCAPE.search(text):
        raise InvalidImageSource(f"invalid URL escape in {text!r}")
    return unquote(text)


def _split_url(uri: str) -> tuple[str, str, str, str]:
    """Split a URI into scheme, opaque part, host and path."""
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in uri):
        raise InvalidImageSource(f"invalid control character in URL {uri!r}")
    rest = uri.partition("#")[0]
    if rest.startswith(":"):
        raise InvalidImageSource(f"missing protocol scheme in {uri!r}")
    scheme = ""
    match = _SCHEME.match(rest)
    if match:
        scheme = match.group(1).lower()
        rest = rest[match.end():]
    rest = rest.partition("?")[0]

    if scheme and rest and not rest.startswith("/"):
        return scheme, rest, "", ""
    if not scheme and not rest.startswith("/") and ":" in rest.partition("/")[0]:
        raise InvalidImageSource(f"first path segment in URL cannot contain colon: {uri!r}")

    host = ""
    if rest.startswith("//") and (scheme or not rest.startswith("///")):
        authority, slash, path = rest[2:].partition("/")
        rest = slash + path
        host = _unescape(authority.rpartition("@")[2])
    return scheme, "", host, _unescape(rest)


def _join(*parts: str) -> str:
    present = [part for part in parts if part]
    if not present:
        return ""
    joined = posixpath.normpath("/".join(present))
    if joined.startswith("//"):
        joined = "/" + joined.lstrip("/")
    return joined


def _split_domain(name: str) -> tuple[str, str]:
    head, slash, tail = name.partition("/")
    if not slash or (not any(c in head for c in ".:") and head != "localhost"):
        domain, remainder = "docker.io", name
    else:
        domain, remainder = head, tail
    if domain == "docker.io" and "/" not in remainder:
        remainder = "library/" + remainder
    return domain, remainder


def _normalize_reference(ref: str) -> str:
    """Validate an image reference and append ':latest' when it has no tag or digest."""
    invalid = InvalidImageSource(f"invalid image reference {ref}")
    if _IDENTIFIER.fullmatch(ref):
        raise invalid
    domain, remainder = _split_domain(ref)
    remote_name = remainder.partition(":")[0]
    if remote_name.lower() != remote_name:
        raise invalid
    match = _REFERENCE.fullmatch(f"{domain}/{remainder}")
    if match is None or len(match.group(1)) > _NAME_MAX_LENGTH:
        raise invalid
    if match.group(2) is None and match.group(3) is None:
        return ref + ":latest"
    return ref


@dataclass
class ImageSource:
    """Where an image is taken from: a container image, directory, file or channel package."""

    value: str = ""
    src_type: SourceType | None = None

    def is_docker(self) -> bool:
        return self.src_type is SourceType.OCI

    def is_channel(self) -> bool:
        return self.src_type is SourceType.CHANNEL

    def is_dir(self) -> bool:
        return self.src_type is SourceType.DIR

    def is_file(self) -> bool:
        return self.src_type is SourceType.FILE

    def is_empty(self) -> bool:
        return self.src_type is None or self.value == ""

    def __str__(self) -> str:
        if self.is_empty():
            return ""
        return f"{self.src_type.value}://{self.value}"

    def update_from_uri(self, uri: str) -> None:
        """Set type and value from a URI; a URI without a known scheme is an image reference."""
        scheme, opaque, host, path = _split_url(uri)
        value = opaque or _join(host, path)
        if scheme in (SourceType.OCI.value, _DOCKER_SCHEME):
            self.value = _normalize_reference(value)
            self.src_type = SourceType.OCI
        elif scheme in (SourceType.CHANNEL.value, SourceType.DIR.value, SourceType.FILE.value):
            self.src_type = SourceType(scheme)
            self.value = value
        else:
            self.value = _normalize_reference(uri)
            self.src_type = SourceType.OCI

    def custom_unmarshal(self, data: object) -> None:
        """Update from decoded configuration data, which must be a URI string."""
        if not isinstance(data, str):
            raise TypeError(f"can't unmarshal {data!r} to an ImageSource type")
        self.update_from_uri(data)

    @classmethod
    def from_uri(cls, uri: str) -> "ImageSource":
        source = cls()
        source.update_from_uri(uri)
        return source

    @classmethod
    def empty(cls) -> "ImageSource":
        return cls()

    @classmethod
    def docker(cls, src: str) -> "ImageSource":
        return cls(src, SourceType.OCI)

    @classmethod
    def file(cls, src: str) -> "ImageSource":
        return cls(src, SourceType.FILE)

    @classmethod
    def channel(cls, src: str) -> "ImageSource":
        return cls(src, SourceType.CHANNEL)

    @classmethod
    def dir(cls, src: str) -> "ImageSource":
        return cls(src, SourceType.DIR)