"""
Shared headless Chromium for all extractions.

One BrowserPool is created at startup and injected wherever pages are needed.
The browser process is launched lazily, relaunched when it disconnects, and
launches are serialized so concurrent callers wait for the one in flight
instead of starting their own. Only one page is open at a time; every page
gets its own context and must be released, which closes both.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Route
from playwright.async_api import Error as PlaywrightError

from farewatch.config import get_settings
from farewatch.exceptions import InfrastructureFault

logger = logging.getLogger(__name__)
settings = get_settings()


class BrowserPool:
    """
    Lazily launched Chromium with per-page contexts.

    `launcher` replaces the Playwright launch (used by tests); it must return
    a connected Browser.
    """

    BROWSER_ARGS = [
        "--disable-blink-features=AutomationControlled",
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-infobars",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--no-first-run",
        "--no-zygote",
        "--disable-extensions",
    ]

    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )

    # São Paulo, matching the BRL currency and pt-BR locale
    GEOLOCATION = {"latitude": -23.5505, "longitude": -46.6333}

    BLOCKED_RESOURCE_TYPES = {"image", "media", "font", "stylesheet"}

    MASK_WEBDRIVER_SCRIPT = (
        "Object.defineProperty(navigator, 'webdriver', {get: () => undefined});"
    )

    def __init__(
        self,
        headless: Optional[bool] = None,
        executable_path: Optional[str] = None,
        locale: Optional[str] = None,
        block_resources: Optional[bool] = None,
        page_timeout_ms: Optional[int] = None,
        launcher: Optional[Callable[[], Awaitable[Browser]]] = None,
    ):
        self.headless = settings.browser_headless if headless is None else headless
        self.executable_path = executable_path or settings.browser_executable_path or None
        self.locale = locale or settings.browser_locale
        self.block_resources = settings.block_resources if block_resources is None else block_resources
        self.page_timeout_ms = page_timeout_ms or settings.page_timeout_ms
        self._launcher = launcher

        self._playwright = None
        self._browser: Optional[Browser] = None
        self._launch_lock = asyncio.Lock()
        self._session_lock = asyncio.Lock()
        self.launching = False
        self.launch_count = 0
        self.open_pages = 0

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    @property
    def accept_language(self) -> str:
        language = self.locale.split("-")[0]
        return f"{self.locale},{language};q=0.9"

    async def get_browser(self) -> Browser:
        """Return the running browser, launching it if needed."""
        if self.is_connected:
            return self._browser

        async with self._launch_lock:
            # Someone else may have launched while we waited
            if self.is_connected:
                return self._browser

            self.launching = True
            try:
                await self._launch()
            finally:
                self.launching = False

        return self._browser

    async def _launch(self):
        await self._shutdown()
        logger.info("Launching Chromium")
        try:
            if self._launcher is not None:
                browser = await self._launcher()
            else:
                browser = await self._launch_chromium()
        except Exception as e:
            await self._shutdown()
            raise InfrastructureFault(f"Browser failed to launch: {e}") from e

        browser.on("disconnected", self._on_disconnected)
        self._browser = browser
        self.launch_count += 1

    async def _launch_chromium(self) -> Browser:
        self._playwright = await async_playwright().start()
        launch_kwargs = {"headless": self.headless, "args": self.BROWSER_ARGS}
        if self.executable_path:
            launch_kwargs["executable_path"] = self.executable_path
        return await self._playwright.chromium.launch(**launch_kwargs)

    def _on_disconnected(self, browser: Browser):
        if self._browser is browser:
            logger.warning("Chromium disconnected, will relaunch on next acquire")
            self._browser = None

    async def _new_context(self, browser: Browser) -> BrowserContext:
        context = await browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=self.USER_AGENT,
            locale=self.locale,
            geolocation=self.GEOLOCATION,
            permissions=["geolocation"],
            extra_http_headers={"Accept-Language": self.accept_language},
        )
        try:
            await context.add_init_script(self.MASK_WEBDRIVER_SCRIPT)
            if self.block_resources:
                await context.route("**/*", self._route_request)
        except BaseException:
            await self._close_context(context)
            raise
        return context

    async def _route_request(self, route: Route):
        if route.request.resource_type in self.BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    async def acquire(self) -> Page:
        """Open a fresh page in its own context. Pair with release()."""
        browser = await self.get_browser()
        try:
            context = await self._new_context(browser)
        except PlaywrightError as e:
            # Browser died between the connection check and use
            logger.warning(f"Could not open browser context ({e}), relaunching")
            await self._shutdown()
            browser = await self.get_browser()
            context = await self._new_context(browser)

        try:
            page = await context.new_page()
            page.set_default_timeout(self.page_timeout_ms)
        except BaseException:
            await self._close_context(context)
            raise
        self.open_pages += 1
        return page

    async def _close_context(self, context: BrowserContext):
        try:
            await context.close()
        except Exception as e:
            logger.debug(f"Error closing browser context: {e}")

    async def release(self, page: Page):
        """Close a page and its context. Safe to call on an already closed page."""
        self.open_pages = max(0, self.open_pages - 1)
        context = page.context
        try:
            await page.close()
        except Exception as e:
            logger.debug(f"Error closing page: {e}")
        await self._close_context(context)

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """One automation session at a time; other callers wait here."""
        async with self._session_lock:
            page = await self.acquire()
            try:
                yield page
            finally:
                await self.release(page)

    async def _shutdown(self):
        browser, self._browser = self._browser, None
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.debug(f"Error closing browser: {e}")

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"Error stopping playwright: {e}")
            self._playwright = None

    async def close(self):
        """Shut the browser down. The next acquire() launches a new one."""
        async with self._launch_lock:
            await self._shutdown()


class ArtifactStore:
    """Screenshots and HTML snapshots of failed pages for offline debugging."""

    def __init__(self, screenshots_dir: Optional[Path] = None, html_dir: Optional[Path] = None):
        self.screenshots_dir = Path(screenshots_dir or settings.screenshots_dir)
        self.html_dir = Path(html_dir or settings.html_snapshots_dir)

    async def capture(self, page: Page, label: str) -> tuple[Optional[str], Optional[str]]:
        """
        Save screenshot and HTML snapshot of `page`.

        Returns: (screenshot_path, html_path); either is None when saving failed.
        """
        timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        prefix = f"{label}_{timestamp}"

        screenshot_path: Optional[str] = None
        html_path: Optional[str] = None

        try:
            self.screenshots_dir.mkdir(parents=True, exist_ok=True)
            screenshot_file = self.screenshots_dir / f"{prefix}.png"
            await page.screenshot(path=str(screenshot_file), full_page=True)
            screenshot_path = str(screenshot_file)
        except Exception as e:
            logger.debug(f"Screenshot capture failed for {label}: {e}")

        try:
            self.html_dir.mkdir(parents=True, exist_ok=True)
            html_file = self.html_dir / f"{prefix}.html"
            content = await page.content()
            html_file.write_text(content, encoding="utf-8")
            html_path = str(html_file)
        except Exception as e:
            logger.debug(f"HTML snapshot failed for {label}: {e}")

        return screenshot_path, html_path
