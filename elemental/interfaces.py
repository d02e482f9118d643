"""Interfaces of collaborators used across the installer."""

from __future__ import annotations

from typing import Any, Protocol

from elemental.logger import Logger


class HTTPClient(Protocol):
    """Downloads a URL to a local destination."""

    def get_url(self, logger: Logger, url: str, destination: str) -> None:
        ...


class LuetInterface(Protocol):
    """Unpacks images and packages into a target directory."""

    plugins: list[str]
    arch: str
    temp_dir: str

    def unpack(self, target: str, image: str, local: bool) -> Any:
        ...

    def unpack_from_channel(self, target: str, package: str, *repositories: Any) -> Any:
        ...


class CloudInitRunner(Protocol):
    """Runs the cloud-init stage of the given name on the given paths."""

    modifier: Any

    def run(self, stage: str, *paths: str) -> None:
        ...