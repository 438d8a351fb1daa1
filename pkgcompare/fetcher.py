"""Async HTTP client for npm package contents served by jsDelivr."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, Self

import httpx

from pkgcompare.compare import build_compare_result
from pkgcompare.config import FetcherConfig, ParseOptions
from pkgcompare.differ import FileDiffer
from pkgcompare.models import CompareResult, FileDiffResult, FileTreeNode, NodeType
from pkgcompare.tree import MAX_FILES_COMPARE

logger = logging.getLogger(__name__)


class FileContentProvider(Protocol):
    async def fetch_file(self, package: str, version: str, path: str) -> str | None: ...


class FileTreeProvider(Protocol):
    async def fetch_file_tree(self, package: str, version: str) -> list[FileTreeNode]: ...


class ManifestProvider(Protocol):
    async def fetch_manifest(self, package: str, version: str) -> dict[str, Any] | None: ...


class RegistryError(Exception):
    """The registry answered with an unexpected error."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class FileTooLargeError(Exception):
    """File content exceeds the configured diff size limit."""

    def __init__(self, path: str, size: int, limit: int) -> None:
        super().__init__(
            f"File too large to diff ({size / 1024:.0f}KB). Maximum is {limit / 1024:.0f}KB."
        )
        self.path = path
        self.size = size
        self.limit = limit


@dataclass
class FetchResult:
    """Result of a single registry request."""

    url: str
    content: str | None
    status_code: int
    error: str | None = None
    content_length: int | None = None

    @property
    def is_success(self) -> bool:
        return self.status_code == 200 and self.content is not None

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


def parse_version_range(version_range: str) -> tuple[str, str] | None:
    """Split ``1.0.0...2.0.0`` (or ``1.0.0..2.0.0``) into its two versions."""
    separator = "..." if "..." in version_range else ".."
    parts = version_range.split(separator)
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def tree_from_listing(files: list[dict[str, Any]], prefix: str = "") -> list[FileTreeNode]:
    """Convert a jsDelivr ``files`` listing into tree nodes with full paths."""
    roots: list[FileTreeNode] = []
    stack: list[tuple[list[dict[str, Any]], str, list[FileTreeNode]]] = [(files, prefix, roots)]

    while stack:
        entries, base, siblings = stack.pop()
        for entry in entries:
            path = f"{base}/{entry['name']}" if base else entry["name"]
            if entry.get("type") == "directory":
                node = FileTreeNode(path=path, type=NodeType.DIRECTORY, children=[])
                stack.append((entry.get("files") or [], path, node.children))
            else:
                node = FileTreeNode(
                    path=path,
                    type=NodeType.FILE,
                    size=entry.get("size"),
                    hash=entry.get("hash"),
                )
            siblings.append(node)

    return roots


class RegistryFetcher:
    """Fetch file trees, manifests and file contents for package versions."""

    def __init__(
        self,
        config: FetcherConfig | None = None,
        backoff_base: float = 0.5,
    ) -> None:
        self.config = config or FetcherConfig()
        self.backoff_base = backoff_base
        self._client = httpx.AsyncClient(timeout=self.config.timeout, follow_redirects=True)
        self._differ = FileDiffer()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def file_url(self, package: str, version: str, path: str) -> str:
        return f"{self.config.cdn_url}/{package}@{version}/{path.lstrip('/')}"

    def tree_url(self, package: str, version: str) -> str:
        return f"{self.config.data_api_url}/{package}@{version}?structure=tree"

    async def fetch(self, url: str) -> FetchResult:
        """Fetch a single URL."""
        try:
            response = await self._client.get(url)
            length = response.headers.get("content-length")
            content_length = int(length) if length and length.isdigit() else None
            if response.status_code == 200:
                return FetchResult(url, response.text, 200, content_length=content_length)
            return FetchResult(
                url, None, response.status_code, f"HTTP {response.status_code}", content_length
            )
        except httpx.TimeoutException as e:
            return FetchResult(url, None, 0, f"Connection timed out: {e}")
        except httpx.RequestError as e:
            return FetchResult(url, None, 0, str(e))

    async def fetch_with_retry(self, url: str) -> FetchResult:
        """Fetch a URL with exponential backoff on server and transport errors."""
        last_result: FetchResult | None = None

        for attempt in range(self.config.retry_count):
            result = await self.fetch(url)
            if result.is_success:
                return result

            last_result = result

            # Don't retry on 4xx errors (client errors)
            if 400 <= result.status_code < 500:
                return result

            logger.warning(f"Request to {url} failed: {result.error}")
            if attempt < self.config.retry_count - 1:
                await asyncio.sleep(self.backoff_base * (2**attempt))

        return last_result or FetchResult(url, None, 0, "Max retries exceeded")

    async def fetch_file(self, package: str, version: str, path: str) -> str | None:
        """Fetch raw file content. Returns None when the file does not exist."""
        result = await self.fetch_with_retry(self.file_url(package, version, path))
        if result.is_not_found:
            return None
        if not result.is_success:
            raise RegistryError(f"Failed to fetch file ({result.error})", result.status_code)

        limit = self.config.max_file_size
        if result.content_length is not None and result.content_length > limit:
            raise FileTooLargeError(path, result.content_length, limit)
        if len(result.content) > limit:
            raise FileTooLargeError(path, len(result.content), limit)

        return result.content

    async def fetch_manifest(self, package: str, version: str) -> dict[str, Any] | None:
        """Fetch package.json. Any failure yields None."""
        result = await self.fetch_with_retry(self.file_url(package, version, "package.json"))
        if not result.is_success:
            return None
        try:
            data = json.loads(result.content)
        except json.JSONDecodeError:
            logger.warning(f"Invalid package.json for {package}@{version}")
            return None
        return data if isinstance(data, dict) else None

    async def fetch_file_tree(self, package: str, version: str) -> list[FileTreeNode]:
        """Fetch the file listing of a package version."""
        result = await self.fetch_with_retry(self.tree_url(package, version))
        if not result.is_success:
            raise RegistryError(
                f"Failed to fetch file tree for {package}@{version} ({result.error})",
                result.status_code,
            )
        try:
            data = json.loads(result.content)
        except json.JSONDecodeError as e:
            raise RegistryError(f"Invalid file listing for {package}@{version}: {e}") from e
        return tree_from_listing(data.get("files") or [])

    async def compare_packages(
        self,
        package: str,
        from_version: str,
        to_version: str,
        max_files: int = MAX_FILES_COMPARE,
    ) -> CompareResult:
        """Compare file trees and dependencies of two versions."""
        start_time = time.perf_counter()

        from_tree, to_tree, from_manifest, to_manifest = await asyncio.gather(
            self.fetch_file_tree(package, from_version),
            self.fetch_file_tree(package, to_version),
            self.fetch_manifest(package, from_version),
            self.fetch_manifest(package, to_version),
        )

        compute_time_ms = int((time.perf_counter() - start_time) * 1000)
        return build_compare_result(
            package,
            from_version,
            to_version,
            from_tree,
            to_tree,
            from_manifest,
            to_manifest,
            compute_time_ms=compute_time_ms,
            max_files=max_files,
        )

    async def compare_file(
        self,
        package: str,
        from_version: str,
        to_version: str,
        path: str,
        options: ParseOptions | Mapping[str, Any] | None = None,
    ) -> FileDiffResult:
        """Diff a single file between two versions."""
        start_time = time.perf_counter()

        from_content, to_content = await asyncio.gather(
            self.fetch_file(package, from_version, path),
            self.fetch_file(package, to_version, path),
        )

        result = self._differ.compute_file_diff(
            package, from_version, to_version, path, from_content, to_content, options
        )
        result.compute_time_ms = int((time.perf_counter() - start_time) * 1000)
        return result
