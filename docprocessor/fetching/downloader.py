import hashlib
from pathlib import Path
from urllib.parse import urlparse

import httpx

from docprocessor.fetching.exceptions import FetchError


def target_filename(url: str) -> str:
    """File name for a download: the URL's last path segment, or a hash of the URL."""
    name = Path(urlparse(url).path).name
    if not name:
        name = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
    if not name.lower().endswith(".pdf"):
        name = f"{name}.pdf"
    return name


class Downloader:
    """Streams a remote document to disk."""

    def __init__(
        self,
        timeout_seconds: float = 100,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._transport = transport

    async def download(self, url: str, target_dir: Path) -> Path:
        """Download ``url`` into ``target_dir`` and return the file path.

        Raises:
            FetchError: on timeouts, HTTP error statuses or write failures.
        """
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / target_filename(url)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with target.open("wb") as handle:
                        async for chunk in response.aiter_bytes():
                            handle.write(chunk)
        except (httpx.HTTPError, OSError) as exc:
            target.unlink(missing_ok=True)
            raise FetchError(f"Download of {url} failed: {exc}") from exc
        return target
