"""Release metadata resolution and binary downloads.

Resolves the latest stable kubectl and kind versions from their upstream
endpoints and downloads release assets for the host architecture.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from pathlib import Path

import httpx

from ..errors import InstallFailed, ReleaseResolutionError
from ..shared.logging import get_logger

logger = get_logger(__name__)

KUBECTL_STABLE_URL = "https://dl.k8s.io/release/stable.txt"
KUBECTL_DOWNLOAD_URL = "https://dl.k8s.io/release/{version}/bin/linux/{arch}/kubectl"
KIND_LATEST_URL = "https://api.github.com/repos/kubernetes-sigs/kind/releases/latest"
KIND_DOWNLOAD_URL = (
    "https://github.com/kubernetes-sigs/kind/releases/download/{tag}/kind-linux-{arch}"
)
DOCKER_GPG_URL = "https://download.docker.com/linux/{os_id}/gpg"
DOCKER_APT_REPO = "https://download.docker.com/linux/{os_id}"


class ReleaseResolver:
    """Resolve latest releases and download assets over HTTPS."""

    def __init__(self, client: httpx.Client | None = None, timeout_seconds: float = 30.0):
        """Initialize resolver.

        Args:
            client: Shared HTTP client; a short-lived one is created per call
                    when omitted.
            timeout_seconds: Timeout for each HTTP request.
        """
        self.client = client
        self.timeout_seconds = timeout_seconds

    @contextlib.contextmanager
    def _http(self) -> Iterator[httpx.Client]:
        if self.client is not None:
            yield self.client
            return
        with httpx.Client(timeout=self.timeout_seconds, follow_redirects=True) as client:
            yield client

    def latest_kubectl(self) -> str:
        """Resolve the latest stable kubectl version (e.g. v1.31.2)."""
        try:
            with self._http() as client:
                response = client.get(KUBECTL_STABLE_URL)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ReleaseResolutionError(
                message=f"Couldn't determine latest kubectl release: {e}",
                data={"url": KUBECTL_STABLE_URL},
            ) from e

        version = response.text.strip()
        if not version.startswith("v"):
            raise ReleaseResolutionError(
                message=f"Unexpected kubectl stable version: {version!r}",
                data={"url": KUBECTL_STABLE_URL},
            )
        logger.info("release.resolved", tool="kubectl", version=version)
        return version

    def latest_kind(self) -> str:
        """Resolve the latest kind release tag from GitHub."""
        try:
            with self._http() as client:
                response = client.get(
                    KIND_LATEST_URL,
                    headers={"Accept": "application/vnd.github+json"},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ReleaseResolutionError(
                message=f"Couldn't determine latest kind release: {e}",
                data={"url": KIND_LATEST_URL},
            ) from e

        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not tag:
            raise ReleaseResolutionError(
                message="Couldn't determine latest kind release; aborting kind install.",
                data={"url": KIND_LATEST_URL},
            )
        logger.info("release.resolved", tool="kind", version=tag)
        return str(tag)

    def kubectl_url(self, version: str, arch: str) -> str:
        return KUBECTL_DOWNLOAD_URL.format(version=version, arch=arch)

    def kind_url(self, tag: str, arch: str) -> str:
        return KIND_DOWNLOAD_URL.format(tag=tag, arch=arch)

    def fetch_text(self, url: str) -> str:
        """Fetch a small text document (e.g. a GPG key).

        Raises:
            InstallFailed: On any HTTP error.
        """
        try:
            with self._http() as client:
                response = client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            raise InstallFailed(message=f"Failed to fetch {url}: {e}", data={"url": url}) from e

    def download(self, url: str, dest: Path) -> Path:
        """Stream a release asset to dest.

        Args:
            url: Asset URL.
            dest: Destination file.

        Returns:
            The destination path.

        Raises:
            InstallFailed: On any HTTP or filesystem error.
        """
        logger.info("release.download", url=url, dest=str(dest))
        try:
            with self._http() as client:
                with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with open(dest, "wb") as f:
                        for chunk in response.iter_bytes():
                            f.write(chunk)
        except (httpx.HTTPError, OSError) as e:
            dest.unlink(missing_ok=True)
            raise InstallFailed(message=f"Failed to download {url}: {e}", data={"url": url}) from e
        return dest
