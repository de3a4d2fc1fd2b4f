"""Open a Playwright browser seeded with the persisted panel login."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from chatguru_clients.exceptions import SessionNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class BrowserSession:
    """A launched browser, its isolated context and a ready page.

    The caller owns the session and must call :meth:`close`.
    """

    playwright: Playwright
    browser: Browser
    context: BrowserContext
    page: Page

    async def close(self) -> None:
        """Close the browser and stop the driver. Never raises."""
        try:
            await self.browser.close()
        except Exception as e:
            logger.debug("Browser close failed: %s", e)
        try:
            await self.playwright.stop()
        except Exception as e:
            logger.debug("Playwright stop failed: %s", e)


class SessionStore:
    """Loads the storage-state file written by the external login flow.

    The file is only ever read here.

    Args:
        session_path: Playwright ``storage_state`` JSON (cookies + storage).
        headless: Launch Chromium without a window.
        relogin_hint: Appended to errors so the caller knows how to log in.
    """

    def __init__(
        self,
        session_path: Path,
        headless: bool = True,
        relogin_hint: str = "",
    ):
        self.session_path = Path(session_path)
        self.headless = headless
        self.relogin_hint = relogin_hint

    def load_state(self) -> dict:
        """Read the persisted storage state."""
        if not self.session_path.exists():
            raise SessionNotFoundError(
                f"Session not found at {self.session_path}. {self.relogin_hint}".strip()
            )
        try:
            return json.loads(self.session_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SessionNotFoundError(
                f"Session file {self.session_path} is unreadable ({e}). {self.relogin_hint}".strip()
            ) from e

    async def open(self) -> BrowserSession:
        """Launch a browser whose context carries the persisted login."""
        storage_state = self.load_state()

        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=self.headless)
        except Exception:
            await playwright.stop()
            raise

        try:
            context = await browser.new_context(
                storage_state=storage_state,
                permissions=["notifications"],
            )
            page = await context.new_page()
        except Exception:
            await browser.close()
            await playwright.stop()
            raise

        logger.debug("Opened browser session from %s", self.session_path)
        return BrowserSession(playwright=playwright, browser=browser, context=context, page=page)
