"""Tests for the panel scraper state machine, with a mocked Playwright page."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from chatguru_clients.config import ChatGuruConfig, ScrapeTimings
from chatguru_clients.exceptions import (
    ChatNotFoundError,
    SessionExpiredError,
    SessionNotFoundError,
)
from chatguru_clients.panel import selectors
from chatguru_clients.panel.models import ChatListing, FilterCriteria
from chatguru_clients.panel.scraper import ChatGuruScraper

CHAT_ID = "686ede5b2333cb755c57d1a5"
CHATS_URL = "https://s17.expertintegrado.app/chats"

NO_WAIT = ScrapeTimings(
    navigation_settle=0,
    filter_settle=0,
    overlay_settle=0,
    click_settle=0,
    list_scroll_settle=0,
    message_scroll_settle=0,
)

CONVERSATION_HTML = """
<div id="chat_messages_app"><div>
  <div class="msg-data">Hoje</div>
  <div class="row_msg"><div class="msg-container"><span class="msg-contentT">um</span></div></div>
  <div class="row_msg"><div class="msg-container"><span class="msg-contentT">dois</span></div></div>
  <div class="row_msg"><div class="msg-container bg-sent-msg"><span class="msg-contentT">três</span></div></div>
</div></div>
"""

LIST_HTML = """
<div class="list__user-card" data-id="abc"><span class="user-name">Ana</span>
<span class="attendance__status">ABERTO</span></div>
"""

UNREAD_LIST_HTML = """
<div class="list__user-card"><span class="user-name">Ana</span>
  <span class="attendance__number">2</span><div class="attendance__hour"><span>14:32</span></div></div>
<div class="list__user-card"><span class="user-name">Bruno</span>
  <span class="attendance__number">1</span><div class="attendance__hour"><span>há 2 dias</span></div></div>
<div class="list__user-card"><span class="user-name">Carla</span>
  <span class="attendance__number">5</span><div class="attendance__hour"><span>há 2 meses</span></div></div>
"""


def make_page(url, html="", row_count=0, scripts=None):
    """AsyncMock page; ``scripts`` maps an in-page script to its result,
    or to a callable receiving the script argument."""
    page = AsyncMock()
    page.url = url
    page.content.return_value = html
    results = {selectors.COUNT_SCRIPT: row_count, **(scripts or {})}

    async def evaluate(script, arg=None):
        result = results.get(script)
        if callable(result):
            return result(arg)
        return result

    page.evaluate.side_effect = evaluate
    pane = AsyncMock()
    pane.bounding_box.return_value = {"x": 0, "y": 0, "width": 400, "height": 600}
    page.query_selector.return_value = pane
    return page


def make_scraper(page):
    session = MagicMock()
    session.page = page
    session.close = AsyncMock()
    store = MagicMock()
    store.open = AsyncMock(return_value=session)
    config = ChatGuruConfig(api_key="k", account_id="a", phone_id="p", server="17")
    return ChatGuruScraper(config, timings=NO_WAIT, session_store=store), session


def script_calls(page, script):
    return [c.args[1] for c in page.evaluate.await_args_list if c.args[0] == script]


def test_read_messages_returns_trailing_window():
    page = make_page(f"{CHATS_URL}#{CHAT_ID}", CONVERSATION_HTML, row_count=3)
    scraper, session = make_scraper(page)

    messages = asyncio.run(scraper.read_messages(CHAT_ID, limit=2))

    assert [m.text for m in messages] == ["dois", "três"]
    page.goto.assert_awaited_once()
    assert page.goto.await_args.args[0] == f"{CHATS_URL}#{CHAT_ID}"
    assert page.goto.await_args.kwargs["wait_until"] == "domcontentloaded"
    page.mouse.wheel.assert_not_awaited()
    session.close.assert_awaited_once()


def test_read_messages_stops_scrolling_without_growth():
    page = make_page(f"{CHATS_URL}#{CHAT_ID}", CONVERSATION_HTML, row_count=3)
    scraper, _ = make_scraper(page)

    asyncio.run(scraper.read_messages(CHAT_ID, limit=50))

    assert page.mouse.wheel.await_count == 2
    page.mouse.wheel.assert_awaited_with(0, -NO_WAIT.wheel_delta)


def test_expired_session_yields_no_messages():
    page = make_page("https://s17.expertintegrado.app/login", CONVERSATION_HTML)
    scraper, session = make_scraper(page)

    with pytest.raises(SessionExpiredError, match="log in again"):
        asyncio.run(scraper.read_messages(CHAT_ID))

    page.content.assert_not_awaited()
    session.close.assert_awaited_once()


def test_browser_closed_when_extraction_fails():
    page = make_page(f"{CHATS_URL}#{CHAT_ID}")
    page.content.side_effect = RuntimeError("Target closed")
    scraper, session = make_scraper(page)

    with pytest.raises(RuntimeError):
        asyncio.run(scraper.read_messages(CHAT_ID))

    session.close.assert_awaited_once()


def test_missing_session_never_opens_a_page():
    page = make_page(CHATS_URL)
    scraper, _ = make_scraper(page)
    scraper.session_store.open.side_effect = SessionNotFoundError("Session not found")

    with pytest.raises(SessionNotFoundError):
        asyncio.run(scraper.list_chats())

    page.goto.assert_not_awaited()


def test_list_chats_applies_filters_and_caps_limit():
    page = make_page(CHATS_URL, LIST_HTML)
    field = AsyncMock()
    page.query_selector.return_value = field
    scraper, session = make_scraper(page)

    criteria = FilterCriteria(
        status="AGUARDANDO",
        unread_only=True,
        whatsapp_number="(81) 99109-5702",
        limit=150,
    )
    listing = asyncio.run(scraper.list_chats(criteria))

    assert [c.chat_id for c in listing.chats] == ["abc"]
    assert listing.filters == ["number=5581991095702", "status=AGUARDANDO", "unread_only"]
    field.fill.assert_awaited_once_with("5581991095702")
    page.keyboard.press.assert_awaited_with("Enter")
    page.select_option.assert_awaited_once()
    assert page.select_option.await_args.args[:2] == (selectors.FILTER_STATUS_SELECT, "AGUARDANDO")
    field.click.assert_awaited_once()

    assert script_calls(page, selectors.SCROLL_CARD_LIST_SCRIPT)[0][2] == 100
    session.close.assert_awaited_once()


def test_list_chats_reports_only_applied_filters():
    page = make_page(CHATS_URL, LIST_HTML, scripts={selectors.CLICK_DEPARTMENT_SCRIPT: ""})
    page.query_selector.return_value = None
    scraper, _ = make_scraper(page)

    criteria = FilterCriteria(name="Ana", archived=True, department="Vendas", order_by="-created")
    listing = asyncio.run(scraper.list_chats(criteria))

    assert len(listing.chats) == 1
    assert listing.filters == []
    page.select_option.assert_not_awaited()


def test_list_chats_with_zero_limit_skips_browser():
    page = make_page(CHATS_URL, LIST_HTML)
    scraper, _ = make_scraper(page)

    assert asyncio.run(scraper.list_chats(FilterCriteria(limit=0))) == ChatListing()
    scraper.session_store.open.assert_not_awaited()


def test_department_exact_match():
    page = make_page(CHATS_URL, LIST_HTML, scripts={selectors.CLICK_DEPARTMENT_SCRIPT: "exact"})
    scraper, _ = make_scraper(page)

    listing = asyncio.run(scraper.list_chats(FilterCriteria(department="Vendas")))

    assert script_calls(page, selectors.CLICK_DEPARTMENT_SCRIPT) == ["Vendas"]
    assert listing.filters == ['department="Vendas"']


def test_department_substring_match_is_logged(caplog):
    page = make_page(CHATS_URL, LIST_HTML, scripts={selectors.CLICK_DEPARTMENT_SCRIPT: "partial"})
    scraper, _ = make_scraper(page)

    with caplog.at_level(logging.INFO, logger="chatguru_clients.panel.scraper"):
        listing = asyncio.run(scraper.list_chats(FilterCriteria(department="Vendas")))

    assert listing.filters == ['department="Vendas"']
    assert any("matched by substring" in r.getMessage() for r in caplog.records)


def test_department_without_match_is_skipped():
    page = make_page(CHATS_URL, LIST_HTML, scripts={selectors.CLICK_DEPARTMENT_SCRIPT: ""})
    scraper, _ = make_scraper(page)

    listing = asyncio.run(scraper.list_chats(FilterCriteria(department="Financeiro")))

    assert listing.filters == []
    assert len(listing.chats) == 1


def make_unread_page(opened_url):
    """Page for the unread scan: Ana opens, Bruno's card has disappeared."""
    page = make_page(CHATS_URL, row_count=3)
    page.content.side_effect = [UNREAD_LIST_HTML, CONVERSATION_HTML]

    def click_card(arg):
        if arg[2] != "Ana":
            return False
        page.url = opened_url
        return True

    def click_nav(arg):
        page.url = CHATS_URL

    results = {
        selectors.CLICK_CARD_BY_NAME_SCRIPT: click_card,
        selectors.CLICK_NAV_SCRIPT: click_nav,
    }
    original = page.evaluate.side_effect

    async def evaluate(script, arg=None):
        if script in results:
            return results[script](arg)
        return await original(script, arg)

    page.evaluate.side_effect = evaluate
    return page


def test_scan_unread_reads_recent_chats():
    page = make_unread_page(f"{CHATS_URL}#{CHAT_ID}")
    scraper, session = make_scraper(page)

    scans = asyncio.run(scraper.scan_unread(max_age_days=30, message_limit=2))

    assert [s.chat.contact_name for s in scans] == ["Ana"]
    assert scans[0].chat.chat_id == CHAT_ID
    assert [m.text for m in scans[0].messages] == ["dois", "três"]

    opened = [arg[2] for arg in script_calls(page, selectors.CLICK_CARD_BY_NAME_SCRIPT)]
    assert opened == ["Ana", "Bruno"]
    assert script_calls(page, selectors.CLICK_NAV_SCRIPT) == [[selectors.NAV_ITEM, "Chats"]]

    page.select_option.assert_awaited_once()
    assert page.select_option.await_args.args[:2] == (
        selectors.FILTER_ORDER_SELECT, "-date_last_message",
    )
    session.close.assert_awaited_once()


def test_scan_unread_rechecks_session_after_click():
    page = make_unread_page("https://s17.expertintegrado.app/login")
    scraper, session = make_scraper(page)

    with pytest.raises(SessionExpiredError):
        asyncio.run(scraper.scan_unread())

    assert page.content.await_count == 1
    session.close.assert_awaited_once()


def test_find_chat_link_reads_id_from_url():
    page = make_page(CHATS_URL)
    phone_input = AsyncMock()
    page.wait_for_selector.return_value = phone_input
    card = AsyncMock()

    async def click():
        page.url = f"{CHATS_URL}#{CHAT_ID}"

    card.click.side_effect = click
    page.query_selector.return_value = card
    scraper, _ = make_scraper(page)

    link = asyncio.run(scraper.find_chat_link("81 99109-5702"))

    phone_input.fill.assert_awaited_once_with("5581991095702")
    assert link.chat_id == CHAT_ID
    assert link.url == f"{CHATS_URL}#{CHAT_ID}"


def test_find_chat_link_without_results():
    page = make_page(CHATS_URL)
    page.query_selector.return_value = None
    scraper, session = make_scraper(page)

    with pytest.raises(ChatNotFoundError, match="5581991095702"):
        asyncio.run(scraper.find_chat_link("5581991095702"))

    session.close.assert_awaited_once()
