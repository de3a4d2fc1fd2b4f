"""CSS selectors and in-page scripts for the ChatGuru panel DOM."""

# Chat list
CHAT_CARD = ".list__user-card"
CARD_NAME = ".user-name"
CARD_STATUS = "span.attendance__status"
CARD_UNREAD = "span.attendance__number"
CARD_TIME = ".attendance__hour span"
CARD_PREVIEW = ".user-msg span[title]"
CARD_LIST_CONTAINERS = (
    ".list__user-cards",
    ".list__container",
    "[class*='chat-list']",
)
NAV_ITEM = ".nav-item"

# Card attributes that may carry the chat id, in order of precedence.
CARD_ID_ATTRIBUTES = ("data-id", "data-chat-id", "data-chat")
# Written by PROBE_CARD_IDS_SCRIPT from framework component state.
PROBED_ID_ATTRIBUTE = "data-probed-chat-id"

# Filters
FILTER_NAME_INPUT = "#inChatsName"
FILTER_PHONE_INPUT = "#inChatsWhatsappNum"
FILTER_STATUS_SELECT = "#selChatsStatus"
FILTER_ORDER_SELECT = "#selChatsOrder"
FILTER_TOGGLE = ".list__single__filter.{name} input[type='checkbox']"

# Conversation
MESSAGES_APP = "#chat_messages_app"
MESSAGES_LIST = "#chat_messages_app > div"
MESSAGE_ROW_CLASS = "row_msg"
DATE_GROUP_CLASS = "msg-data"
MESSAGE_CONTAINER = ".msg-container"
OUTGOING_CLASS = "bg-sent-msg"
MESSAGE_TEXT = "span.msg-contentT"
MESSAGE_TIME = "span.msg-timestamp"

# Overlays that intercept clicks and wheel events.
OVERLAYS = (
    "#beamerPushModal",
    ".modal.show",
    ".modal.active",
    "[role='dialog'].active",
    ".modal-backdrop",
    ".push-overlay",
)

REMOVE_OVERLAYS_SCRIPT = """
(selectors) => {
    for (const selector of selectors) {
        document.querySelectorAll(selector).forEach((el) => el.remove());
    }
}
"""

COUNT_SCRIPT = "(selector) => document.querySelectorAll(selector).length"

SCROLL_CARD_LIST_SCRIPT = """
async ([containers, cardSelector, targetCount, maxIterations, settleMs]) => {
    let container = null;
    for (const selector of containers) {
        container = document.querySelector(selector);
        if (container) break;
    }
    if (!container) return 0;
    let previous = -1;
    for (let i = 0; i < maxIterations; i++) {
        const count = document.querySelectorAll(cardSelector).length;
        if (count >= targetCount || count === previous) break;
        previous = count;
        container.scrollTop = container.scrollHeight;
        await new Promise((resolve) => setTimeout(resolve, settleMs));
    }
    return document.querySelectorAll(cardSelector).length;
}
"""

# Best effort: relies on Vue 2 internals (``__vue__``) and breaks silently
# when the panel changes framework or component shape.
PROBE_CARD_IDS_SCRIPT = """
([cardSelector, idAttributes, probedAttribute]) => {
    for (const card of document.querySelectorAll(cardSelector)) {
        if (idAttributes.some((name) => card.getAttribute(name))) continue;
        let chatId = "";
        try {
            const vue = card.__vue__;
            if (vue) {
                chatId = (vue.chat && (vue.chat._id || vue.chat.id))
                    || (vue.$props && (vue.$props.chatId || (vue.$props.chat && vue.$props.chat._id)))
                    || "";
            }
        } catch (e) {
            chatId = "";
        }
        if (chatId) card.setAttribute(probedAttribute, String(chatId));
    }
}
"""

CLICK_DEPARTMENT_SCRIPT = """
(department) => {
    const wanted = department.toLowerCase();
    const labels = Array.from(document.querySelectorAll("label"));
    const text = (label) => (label.textContent || "").trim().toLowerCase();
    const clickIn = (label) => {
        const checkbox = label.querySelector("input[type='checkbox']");
        if (!checkbox) return false;
        checkbox.click();
        return true;
    };
    for (const label of labels) {
        if (text(label) && text(label) === wanted && clickIn(label)) return "exact";
    }
    for (const label of labels) {
        if (text(label) && text(label).includes(wanted) && clickIn(label)) return "partial";
    }
    return "";
}
"""

CLICK_CARD_BY_NAME_SCRIPT = """
([cardSelector, nameSelector, name]) => {
    for (const card of document.querySelectorAll(cardSelector)) {
        const el = card.querySelector(nameSelector);
        if (el && el.textContent.trim() === name) {
            card.click();
            return true;
        }
    }
    return false;
}
"""

CLICK_NAV_SCRIPT = """
([navSelector, label]) => {
    for (const item of document.querySelectorAll(navSelector)) {
        if (item.textContent.trim() === label) {
            item.click();
            return true;
        }
    }
    return false;
}
"""
