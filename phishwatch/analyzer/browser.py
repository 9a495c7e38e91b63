"""Playwright-based page capture for baseline and candidate hosts."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from playwright.async_api import Browser, Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeout
from playwright.async_api import async_playwright

from ..errors import CaptureError, CaptureTimeout
from .capture import capture_from_payload
from .models import PageCapture

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1920, "height": 1080}

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Elements whose text is treated as brand keywords
KEYWORD_SELECTORS = 'h1, h2, h3, .logo, .brand, #logo, [class*="logo"], [class*="brand"]'

# Seconds to let client-side rendering settle after network idle
RENDER_SETTLE_SECONDS = 2.0

EXTRACT_SCRIPT = """
({ keywordSelectors, maxDepth, maxChildren }) => {
    const keywords = [];
    document.querySelectorAll(keywordSelectors).forEach(el => {
        const text = (el.textContent || '').trim();
        if (text) keywords.push(text.toLowerCase());
    });

    const forms = [];
    document.querySelectorAll('form').forEach(form => {
        const fields = [];
        form.querySelectorAll('input, select, textarea').forEach(input => {
            fields.push({
                type: input.type || input.tagName.toLowerCase(),
                name: input.name || '',
                id: input.id || '',
                placeholder: input.placeholder || '',
            });
        });
        forms.push({ fields, action: form.action || '' });
    });

    const structure = (node, depth) => {
        if (!node || depth > maxDepth) return null;
        const result = {
            tag: node.tagName,
            classes: Array.from(node.classList || []),
            id: node.id || '',
        };
        if (node.children && node.children.length > 0 && depth < maxDepth) {
            result.children = Array.from(node.children)
                .slice(0, maxChildren)
                .map(child => structure(child, depth + 1))
                .filter(Boolean);
        }
        return result;
    };

    return {
        text: document.body ? (document.body.innerText || '') : '',
        keywords,
        forms,
        domStructure: structure(document.body, 0),
    };
}
"""


class BrowserCapture:
    """Renders hosts in headless Chromium and extracts comparison features."""

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._start_lock = asyncio.Lock()

    async def start(self):
        """Start the browser instance."""
        async with self._start_lock:
            if self._browser:
                return
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=[
                    "--disable-dev-shm-usage",
                    "--no-sandbox",
                    "--disable-setuid-sandbox",
                    "--disable-gpu",
                ],
            )
            logger.info("Browser started")

    async def stop(self):
        """Stop the browser instance."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Browser stopped")

    async def _navigate(self, page: Page, target: str, timeout_ms: float) -> str:
        """Load the target over HTTPS, falling back to HTTP."""
        last_error: Optional[Exception] = None
        for scheme in ("https", "http"):
            url = f"{scheme}://{target}"
            try:
                await page.goto(url, timeout=timeout_ms, wait_until="domcontentloaded")
                try:
                    await page.wait_for_load_state("networkidle", timeout=timeout_ms)
                except PlaywrightTimeout:
                    # Long-polling pages never go idle; use what has rendered.
                    logger.debug("Network never went idle for %s", url)
                return url
            except PlaywrightError as e:
                last_error = e
                logger.debug("Failed to load %s: %s", url, e)
        if isinstance(last_error, PlaywrightTimeout):
            raise CaptureTimeout(target, f"timed out loading: {str(last_error)[:200]}")
        raise CaptureError(target, f"failed to load: {str(last_error)[:200]}")

    async def capture(self, target: str, timeout: float, screenshot_path: Path) -> PageCapture:
        """Render ``target`` and return its normalized features.

        Raises CaptureTimeout/CaptureError when the host cannot be rendered.
        """
        if not self._browser:
            await self.start()

        timeout_ms = timeout * 1000
        context = None
        page = None
        try:
            context = await self._browser.new_context(
                viewport=VIEWPORT,
                user_agent=USER_AGENT,
                ignore_https_errors=True,
                locale="en-US",
            )
            page = await context.new_page()
            page.set_default_timeout(timeout_ms)

            url = await self._navigate(page, target, timeout_ms)
            await asyncio.sleep(RENDER_SETTLE_SECONDS)

            payload = await page.evaluate(
                EXTRACT_SCRIPT,
                {"keywordSelectors": KEYWORD_SELECTORS, "maxDepth": 5, "maxChildren": 10},
            )
            title = await page.title()

            screenshot_path = Path(screenshot_path)
            screenshot_path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(screenshot_path), full_page=False)

            capture = capture_from_payload(
                target,
                payload or {},
                screenshot_ref=str(screenshot_path),
                url=page.url or url,
                title=title,
            )
            logger.info(
                "Captured %s: %s chars, %s keywords, %s forms",
                target,
                len(capture.text),
                len(capture.keywords),
                len(capture.forms),
            )
            return capture

        except CaptureError:
            raise
        except PlaywrightTimeout as e:
            raise CaptureTimeout(target, f"timed out: {str(e)[:200]}") from e
        except PlaywrightError as e:
            raise CaptureError(target, f"browser error: {str(e)[:200]}") from e

        finally:
            if page:
                await page.close()
            if context:
                await context.close()
