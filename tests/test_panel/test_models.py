"""Tests for panel data models."""

import pytest

from chatguru_clients.panel.models import ChatListing, FilterCriteria


def test_effective_limit_is_capped():
    assert FilterCriteria(unread_only=True, limit=150).effective_limit == 100
    assert FilterCriteria(limit=20).effective_limit == 20


def test_effective_limit_allows_zero():
    assert FilterCriteria(limit=0).effective_limit == 0
    assert FilterCriteria(limit=-5).effective_limit == 0


def test_rejects_unknown_status():
    with pytest.raises(ValueError, match="Unknown chat status"):
        FilterCriteria(status="PENDENTE")


def test_rejects_unknown_ordering():
    with pytest.raises(ValueError, match="Unknown ordering"):
        FilterCriteria(order_by="name")


def test_empty_listing():
    listing = ChatListing()
    assert listing.chats == []
    assert listing.filters == []
