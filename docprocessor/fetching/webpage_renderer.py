from pathlib import Path

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from docprocessor.fetching.exceptions import FetchError


class WebpageRenderer:
    """Prints a web page to a paginated PDF with headless Chromium."""

    def __init__(self, timeout_seconds: float = 100, page_format: str = "A4") -> None:
        self._timeout_ms = timeout_seconds * 1000
        self._page_format = page_format

    async def render(self, url: str, target: Path) -> Path:
        """Render ``url`` to ``target`` and return it.

        Raises:
            FetchError: if navigation or printing fails.
        """
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch()
                try:
                    page = await browser.new_page()
                    await page.goto(url, wait_until="networkidle", timeout=self._timeout_ms)
                    await page.pdf(path=str(target), format=self._page_format)
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            raise FetchError(f"Rendering of {url} failed: {exc}") from exc
        return target
