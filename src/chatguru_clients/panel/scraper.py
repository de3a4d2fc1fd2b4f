"""Drive the ChatGuru panel SPA to read chat lists and message history.

Every public method runs the same sequence on a fresh browser: open the
persisted session, navigate, verify the session is still logged in,
optionally filter, clear overlays, scroll to load lazy content, snapshot
the DOM and extract records. The browser is closed on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from chatguru_clients.config import ChatGuruConfig, ScrapeTimings
from chatguru_clients.exceptions import ChatNotFoundError, SessionExpiredError
from chatguru_clients.panel import selectors
from chatguru_clients.panel.extract import (
    chat_id_from_url,
    extract_chat_cards,
    extract_messages,
    is_login_url,
    is_recent_timestamp,
)
from chatguru_clients.panel.models import (
    MAX_LIST_LIMIT,
    ChatLink,
    ChatListing,
    ChatMessage,
    ChatScan,
    ChatSummary,
    FilterCriteria,
)
from chatguru_clients.panel.session import SessionStore
from chatguru_clients.phone import normalize_phone

logger = logging.getLogger(__name__)


class ChatGuruScraper:
    """Reads panel-only data (chat list, message history) via Playwright.

    Args:
        config: Deployment settings; provides URLs and the session path.
        timings: Settle delays and scroll bounds. Defaults to production values.
        session_store: Override the store, e.g. for a headed browser.
    """

    def __init__(
        self,
        config: ChatGuruConfig,
        timings: ScrapeTimings | None = None,
        session_store: SessionStore | None = None,
    ):
        self.config = config
        self.timings = timings or ScrapeTimings()
        self.session_store = session_store or SessionStore(
            config.session_path,
            relogin_hint=config.relogin_instruction(),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list_chats(self, criteria: FilterCriteria | None = None) -> ChatListing:
        """List chat cards after applying ``criteria`` in the panel UI.

        Filters whose widget is missing from the current UI are skipped;
        ``ChatListing.filters`` names only the ones that were applied.
        """
        criteria = criteria or FilterCriteria()
        if criteria.effective_limit == 0:
            return ChatListing()
        async with self._page() as page:
            await self._navigate(page, self.config.chats_url)
            await self._remove_overlays(page)
            applied = await self._apply_filters(page, criteria)
            logger.info("Listing chats with filters: %s", ", ".join(applied) or "none")
            await self._stabilize(page)
            chats = await self._collect_cards(page, criteria.effective_limit)
            return ChatListing(chats=chats, filters=applied)

    async def read_messages(self, chat_id: str, limit: int = 50) -> list[ChatMessage]:
        """Return the last ``limit`` messages of a chat, oldest first."""
        async with self._page() as page:
            await self._navigate(page, self.config.chat_url(chat_id))
            return await self._load_messages(page, limit)

    async def find_chat_link(self, chat_number: str) -> ChatLink:
        """Find an existing chat by phone number through the panel filter.

        The returned ``chat_id`` is empty when the panel did not expose it
        in the URL after opening the chat.
        """
        number = normalize_phone(chat_number)
        async with self._page() as page:
            await self._navigate(page, self.config.chats_url)
            await self._remove_overlays(page)

            phone_input = await page.wait_for_selector(
                selectors.FILTER_PHONE_INPUT,
                timeout=self.timings.selector_timeout_ms,
            )
            await phone_input.fill(number)
            await page.keyboard.press("Enter")
            await asyncio.sleep(self.timings.filter_settle)

            card = await page.query_selector(selectors.CHAT_CARD)
            if card is None:
                raise ChatNotFoundError(f"No chat found for number {number}.")
            await card.click()
            await asyncio.sleep(self.timings.click_settle)

            chat_id = chat_id_from_url(page.url)
            url = self.config.chat_url(chat_id) if chat_id else page.url
            return ChatLink(chat_id=chat_id, url=url)

    async def scan_unread(
        self,
        max_age_days: int = 30,
        message_limit: int = 40,
    ) -> list[ChatScan]:
        """Open every recent chat with unread messages and read its history.

        Uses a single browser: the list is filtered to unread chats ordered
        by last message, each card is opened in turn and the panel is taken
        back to the chat list through its navigation bar.
        """
        async with self._page() as page:
            await self._navigate(page, self.config.chats_url)
            await self._wait_for_cards(page)
            await self._remove_overlays(page)
            await self._apply_filters(
                page, FilterCriteria(unread_only=True, order_by="-date_last_message")
            )
            cards = await self._collect_cards(page, MAX_LIST_LIMIT)
            recent = [c for c in cards if is_recent_timestamp(c.timestamp, max_age_days)]
            logger.info("%d unread chats, %d within %d days", len(cards), len(recent), max_age_days)

            results: list[ChatScan] = []
            for index, chat in enumerate(recent, start=1):
                logger.info("[%d/%d] Opening %s", index, len(recent), chat.contact_name)
                opened = await page.evaluate(
                    selectors.CLICK_CARD_BY_NAME_SCRIPT,
                    [selectors.CHAT_CARD, selectors.CARD_NAME, chat.contact_name],
                )
                if not opened:
                    logger.info("Card for %s is gone, skipping", chat.contact_name)
                    continue
                await asyncio.sleep(self.timings.click_settle)
                self._check_auth(page)

                chat.chat_id = chat_id_from_url(page.url) or chat.chat_id
                messages = await self._load_messages(page, message_limit)
                results.append(ChatScan(chat=chat, messages=messages))

                await page.evaluate(selectors.CLICK_NAV_SCRIPT, [selectors.NAV_ITEM, "Chats"])
                await asyncio.sleep(self.timings.click_settle)
            return results

    # ------------------------------------------------------------------
    # Session and navigation
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _page(self) -> AsyncIterator[Page]:
        session = await self.session_store.open()
        try:
            yield session.page
        finally:
            await session.close()

    async def _navigate(self, page: Page, url: str) -> None:
        logger.info("Opening %s", url)
        await page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=self.timings.navigation_timeout_ms,
        )
        await asyncio.sleep(self.timings.navigation_settle)
        self._check_auth(page)

    def _check_auth(self, page: Page) -> None:
        if is_login_url(page.url):
            raise SessionExpiredError(
                f"Session expired (redirected to {page.url}). "
                f"{self.config.relogin_instruction()}"
            )

    async def _wait_for_cards(self, page: Page) -> None:
        try:
            await page.wait_for_selector(
                selectors.CHAT_CARD, timeout=self.timings.selector_timeout_ms
            )
        except PlaywrightTimeoutError:
            logger.info("No chat cards rendered within %dms", self.timings.selector_timeout_ms)

    async def _remove_overlays(self, page: Page) -> None:
        await page.evaluate(selectors.REMOVE_OVERLAYS_SCRIPT, list(selectors.OVERLAYS))

    async def _stabilize(self, page: Page) -> None:
        await self._remove_overlays(page)
        await asyncio.sleep(self.timings.overlay_settle)

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    async def _apply_filters(self, page: Page, criteria: FilterCriteria) -> list[str]:
        """Apply the filters the current UI supports; returns what was applied.

        Order: text inputs, selects, toggles, department.
        """
        applied: list[str] = []

        if criteria.name and await self._fill_and_submit(
            page, selectors.FILTER_NAME_INPUT, criteria.name
        ):
            applied.append(f'name="{criteria.name}"')
        if criteria.whatsapp_number:
            number = normalize_phone(criteria.whatsapp_number)
            if await self._fill_and_submit(page, selectors.FILTER_PHONE_INPUT, number):
                applied.append(f"number={number}")

        if criteria.status and await self._select(
            page, selectors.FILTER_STATUS_SELECT, criteria.status
        ):
            applied.append(f"status={criteria.status}")
        if criteria.order_by and await self._select(
            page, selectors.FILTER_ORDER_SELECT, criteria.order_by
        ):
            applied.append(f"order_by={criteria.order_by}")

        toggles = [
            ("unread", "unread_only", criteria.unread_only),
            ("archived", "archived", criteria.archived),
            ("favorited", "favorited", criteria.favorited),
        ]
        for name, label, wanted in toggles:
            if wanted and await self._toggle(page, name):
                applied.append(label)

        if criteria.department and await self._select_department(page, criteria.department):
            applied.append(f'department="{criteria.department}"')

        return applied

    async def _fill_and_submit(self, page: Page, selector: str, value: str) -> bool:
        field = await page.query_selector(selector)
        if field is None:
            logger.debug("Filter input %s not found, skipping", selector)
            return False
        await field.fill(value)
        await page.keyboard.press("Enter")
        await asyncio.sleep(self.timings.filter_settle)
        return True

    async def _select(self, page: Page, selector: str, value: str) -> bool:
        if await page.query_selector(selector) is None:
            logger.debug("Filter select %s not found, skipping", selector)
            return False
        try:
            await page.select_option(
                selector, value, timeout=self.timings.selector_timeout_ms
            )
        except PlaywrightError:
            logger.debug("Option %s not selectable in %s, skipping", value, selector)
            return False
        await asyncio.sleep(self.timings.filter_settle)
        return True

    async def _toggle(self, page: Page, name: str) -> bool:
        checkbox = await page.query_selector(selectors.FILTER_TOGGLE.format(name=name))
        if checkbox is None:
            logger.debug("Toggle filter %s not found, skipping", name)
            return False
        await checkbox.click()
        await asyncio.sleep(self.timings.filter_settle)
        return True

    async def _select_department(self, page: Page, department: str) -> bool:
        # Exact label match first, then the first label containing the text.
        # A substring can hit the wrong department when names overlap.
        match = await page.evaluate(selectors.CLICK_DEPARTMENT_SCRIPT, department)
        await asyncio.sleep(self.timings.filter_settle)
        if not match:
            logger.debug("No department label matches %r, skipping", department)
            return False
        if match == "partial":
            logger.info("Department %r matched by substring", department)
        return True

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def _collect_cards(self, page: Page, limit: int) -> list[ChatSummary]:
        loaded = await page.evaluate(
            selectors.SCROLL_CARD_LIST_SCRIPT,
            [
                list(selectors.CARD_LIST_CONTAINERS),
                selectors.CHAT_CARD,
                limit,
                self.timings.max_scroll_iterations,
                int(self.timings.list_scroll_settle * 1000),
            ],
        )
        logger.debug("%s chat cards loaded", loaded)
        await asyncio.sleep(self.timings.overlay_settle)
        await page.evaluate(
            selectors.PROBE_CARD_IDS_SCRIPT,
            [
                selectors.CHAT_CARD,
                list(selectors.CARD_ID_ATTRIBUTES),
                selectors.PROBED_ID_ATTRIBUTE,
            ],
        )
        return extract_chat_cards(await page.content(), limit)

    async def _load_messages(self, page: Page, limit: int) -> list[ChatMessage]:
        try:
            await page.wait_for_selector(
                selectors.MESSAGES_APP, timeout=self.timings.selector_timeout_ms
            )
        except PlaywrightTimeoutError:
            logger.info("Message pane did not render within %dms", self.timings.selector_timeout_ms)
        await asyncio.sleep(self.timings.click_settle)
        await self._remove_overlays(page)
        await self._scroll_messages_up(page, limit)
        return extract_messages(await page.content(), limit)

    async def _scroll_messages_up(self, page: Page, limit: int) -> None:
        """Wheel the conversation upwards until ``limit`` rows are loaded or
        scrolling stops producing new rows."""
        row_selector = f".{selectors.MESSAGE_ROW_CLASS}"
        previous = 0
        for iteration in range(self.timings.max_scroll_iterations):
            count = await page.evaluate(selectors.COUNT_SCRIPT, row_selector)
            if count >= limit:
                break
            if count == previous and iteration > 1:
                break
            previous = count

            await self._remove_overlays(page)
            # Synthetic scrollTop changes do not trigger history loading;
            # a real wheel event over the pane does.
            pane = await page.query_selector(selectors.MESSAGES_APP)
            box = await pane.bounding_box() if pane is not None else None
            if box:
                await page.mouse.move(box["x"] + box["width"] / 2, box["y"] + 50)
                await page.mouse.wheel(0, -self.timings.wheel_delta)

            logger.debug("Scroll up %d: %d messages loaded", iteration + 1, count)
            await asyncio.sleep(self.timings.message_scroll_settle)
