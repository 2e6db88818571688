"""SVG receipt to PDF conversion with headless Chromium (Playwright).

A fresh browser is launched per conversion. Whatever happens during
navigation or capture, the browser is closed before the error propagates.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import structlog
from playwright.async_api import Browser, async_playwright

from shared.errors import RenderError

logger = structlog.get_logger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

SCALE_FACTOR = 2

_HOST_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <style>
    body {{ margin: 0; padding: 0; }}
    svg {{ display: block; width: 100%; height: auto; }}
  </style>
</head>
<body>
{svg}
</body>
</html>"""

_READ_DIMENSIONS = """() => {
  const svg = document.querySelector("svg");
  return {
    width: svg.getAttribute("width") || svg.viewBox.baseVal.width,
    height: svg.getAttribute("height") || svg.viewBox.baseVal.height,
  };
}"""

BrowserLauncher = Callable[[], AbstractAsyncContextManager[Browser]]


@asynccontextmanager
async def launch_chromium() -> AsyncIterator[Browser]:
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=True, args=CHROMIUM_ARGS)
        yield browser


def host_document(svg: str) -> str:
    """Wrap the SVG in a minimal HTML page; the XML prolog is not valid inside HTML."""
    body = svg.split("?>", 1)[1] if svg.lstrip().startswith("<?xml") else svg
    return _HOST_PAGE.format(svg=body.strip())


class ReceiptPdfConverter:
    def __init__(self, launcher: BrowserLauncher = launch_chromium) -> None:
        self.launcher = launcher

    async def render(self, svg: str) -> bytes:
        """Capture ``svg`` as a single page PDF sized to the drawing."""
        try:
            async with self.launcher() as browser:
                try:
                    return await self._capture(browser, svg)
                finally:
                    await browser.close()
        except RenderError:
            raise
        except Exception as exc:
            logger.error("receipt_pdf_failed", error=str(exc), exc_info=True)
            raise RenderError(f"Could not render receipt PDF: {exc}") from exc

    async def _capture(self, browser: Browser, svg: str) -> bytes:
        page = await browser.new_page(device_scale_factor=SCALE_FACTOR)
        await page.set_content(host_document(svg), wait_until="networkidle")

        dimensions = await page.evaluate(_READ_DIMENSIONS)
        width = int(float(dimensions["width"]))
        height = int(float(dimensions["height"]))
        if width <= 0 or height <= 0:
            raise RenderError(f"Receipt has no drawable area ({width}x{height})")

        await page.set_viewport_size({"width": width, "height": height})
        pdf = await page.pdf(
            width=f"{width}px",
            height=f"{height}px",
            print_background=True,
            prefer_css_page_size=True,
        )
        logger.debug("receipt_pdf_rendered", bytes=len(pdf), width=width, height=height)
        return pdf
