"""Client for the LlamaParse document parsing API.

A file is uploaded as a job, the job status is polled until it is terminal,
and the markdown result is split into pages on a fixed separator.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx

from docprocessor.logging.logger import Log
from docprocessor.parsing.exceptions import RemoteParseError, RemoteParseTimeoutError

PAGE_SEPARATOR = "3c579d32-abcc-4cab-bd6c-88ce8d754037"

_FAILED_STATUSES = frozenset({"ERROR", "CANCELED", "CANCELLED"})


class LlamaParseClient:
    """Async client for one upload, poll and fetch cycle per file."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        poll_interval_seconds: float = 1.0,
        timeout_seconds: float = 600,
        request_timeout_seconds: float = 100,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._poll_interval = poll_interval_seconds
        self._timeout = timeout_seconds
        self._request_timeout = request_timeout_seconds
        self._transport = transport
        self._sleep = sleep
        self._clock = clock

    async def parse(self, path: Path) -> list[str]:
        """Return the markdown of every page of ``path``, first page first.

        Raises:
            RemoteParseError: on HTTP errors or a failed job.
            RemoteParseTimeoutError: if the job is not done within the timeout.
        """
        async with httpx.AsyncClient(
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self._request_timeout,
            transport=self._transport,
        ) as client:
            job_id = await self._upload(client, path)
            Log.info(f"Remote parse job {job_id} started", file=path.name)
            await self._wait_for_job(client, job_id)
            payload = await self._get_json(client, f"/job/{job_id}/result/markdown")

        markdown = payload.get("markdown")
        if not isinstance(markdown, str):
            raise RemoteParseError(f"Job {job_id} returned no markdown")
        return markdown.split(PAGE_SEPARATOR)

    async def _upload(self, client: httpx.AsyncClient, path: Path) -> str:
        try:
            with path.open("rb") as handle:
                response = await client.post(
                    f"{self._base_url}/upload",
                    files={"file": (path.name, handle, "application/pdf")},
                    data={"page_separator": PAGE_SEPARATOR},
                )
            response.raise_for_status()
            payload = response.json()
        except (OSError, httpx.HTTPError, ValueError) as exc:
            raise RemoteParseError(f"Upload of {path.name} failed: {exc}") from exc

        job_id = payload.get("id") if isinstance(payload, dict) else None
        if not job_id:
            raise RemoteParseError(f"Upload of {path.name} returned no job id")
        return str(job_id)

    async def _wait_for_job(self, client: httpx.AsyncClient, job_id: str) -> None:
        deadline = self._clock() + self._timeout
        while True:
            status = str((await self._get_json(client, f"/job/{job_id}")).get("status", ""))
            if status == "SUCCESS":
                return
            if status.upper() in _FAILED_STATUSES:
                raise RemoteParseError(f"Job {job_id} ended with status {status}")
            if self._clock() >= deadline:
                raise RemoteParseTimeoutError(
                    f"Job {job_id} not finished after {self._timeout}s (status {status})"
                )
            await self._sleep(self._poll_interval)

    async def _get_json(self, client: httpx.AsyncClient, path: str) -> dict[str, Any]:
        try:
            response = await client.get(f"{self._base_url}{path}")
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RemoteParseError(f"GET {path} failed: {exc}") from exc
        if not isinstance(payload, dict):
            raise RemoteParseError(f"GET {path} returned {type(payload).__name__}")
        return payload
