from __future__ import annotations
import pytest
from app.config import settings
from app.services.moderation import classify, MESSAGE_RULES, TITLE_RULES


@pytest.mark.parametrize("text", ["hello everyone", "Meet at the fountain?", "see you at eight", ""])
def test_clean_messages_pass(text):
    assert classify(text, MESSAGE_RULES).flagged is False


@pytest.mark.parametrize("text, matched", [
    ("send me cash tonight", "cash"),
    ("wanna have sex", "sex"),
    ("I will kill you", "kill"),
    ("bring a gun", "gun"),
    ("smoke weed", "weed"),
    ("easy money", "money"),
    ("damn it", "damn"),
    ("great investment opportunity", "investment"),
])
def test_full_banned_list(text, matched):
    r = classify(text, MESSAGE_RULES)
    assert r.flagged and r.reason == "banned_term"
    assert r.matched == matched


def test_terms_match_inside_words():
    # plain substring containment, no word boundaries
    r = classify("skills workshop", MESSAGE_RULES)
    assert r.flagged and r.matched == "kill"


def test_banned_term_is_case_insensitive():
    r = classify("This is SHIT", MESSAGE_RULES)
    assert r.flagged and r.reason == "banned_term" and r.matched == "shit"


def test_banned_terms_win_over_patterns():
    # contains both a banned phrase and a URL
    r = classify("buy now at https://example.com", MESSAGE_RULES)
    assert r.reason == "banned_term"
    assert r.matched == "buy now"


@pytest.mark.parametrize("text, matched", [
    ("call me 555-123-4567", "555-123-4567"),
    ("mail me: someone@example.org", "someone@example.org"),
    ("visit www.example.com", "www"),
    ("only $50 each", "$50"),
    ("add me on WhatsApp", "WhatsApp"),
])
def test_suspicious_patterns(text, matched):
    r = classify(text, MESSAGE_RULES)
    assert r.flagged and r.reason == "suspicious_pattern"
    assert r.matched == matched


def test_title_rules():
    assert classify("Coffee walk by the river", TITLE_RULES).flagged is False
    r = classify("Illegal rave", TITLE_RULES)
    assert r.reason == "banned_term" and r.matched == "illegal"
    r = classify("Free   money workshop", TITLE_RULES)
    assert r.reason == "suspicious_pattern"
    r = classify("Sell your bikes here", TITLE_RULES)
    assert r.reason == "suspicious_pattern" and r.matched == "Sell"


def test_extra_terms_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "moderation_extra_terms", ["pineapple"])
    r = classify("who likes Pineapple pizza", MESSAGE_RULES)
    assert r.flagged and r.matched == "pineapple"
    assert classify("pineapple party", TITLE_RULES).flagged
