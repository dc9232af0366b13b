from __future__ import annotations

from carouselsearch.embeddings.text import build_embedding_text
from carouselsearch.models import CollectionKind


def test_carousel_text_orders_parts_and_synthesises_slides():
    fields = {
        "title": "Growth loops",
        "description": "Why funnels leak",
        "category": "Marketing",
        "slides": [
            {"rawText": "Start here", "placeholder": {"title": "Hook", "subtitle": "Sub", "body": "Body"}},
            {},
            {"text": "Closing"},
        ],
        "postContent": "Full caption",
        "hook": "Stop scrolling",
        "tags": ["growth", "saas"],
    }

    text = build_embedding_text("carousels", fields)

    assert text == (
        "Title: Growth loops\n"
        "Description: Why funnels leak\n"
        "Category: Marketing\n"
        "Slide 1: Start here Hook Sub Body | Slide 3: Closing\n"
        "Post: Full caption\n"
        "Hook: Stop scrolling\n"
        "Tags: growth, saas"
    )


def test_carousel_slide_fields_keep_their_order():
    fields = {"slides": [{"text": "t", "content": "c", "finalText": "f", "rawText": "r"}]}
    assert build_embedding_text("carousels", fields) == "Slide 1: r f c t"


def test_template_text_uses_name_fallbacks_theme_and_placeholder_slides():
    fields = {
        "name": "Bold launch",
        "title": "ignored",
        "description": "Announce a product",
        "category": "Launch",
        "tags": ["launch"],
        "style": "minimal",
        "theme": {"name": "Midnight", "colors": ["#000"]},
        "layout": "split",
        "slides": [
            {"placeholder": {"title": "Big news", "subtitle": "not used", "body": "We shipped"}, "rawText": "not used"},
        ],
    }

    text = build_embedding_text("carouselTemplates", fields)

    assert text == (
        "Name: Bold launch\n"
        "Description: Announce a product\n"
        "Category: Launch\n"
        "Tags: launch\n"
        "Style: minimal\n"
        "Theme: Midnight\n"
        "Layout: split\n"
        "Slide 1: Big news We shipped"
    )


def test_template_name_prefers_template_name_and_accepts_string_theme():
    fields = {"templateName": "Primary", "name": "Secondary", "theme": "Sunrise"}
    assert build_embedding_text(CollectionKind.TEMPLATE, fields) == "Name: Primary\nTheme: Sunrise"


def test_template_theme_without_a_name_is_skipped():
    for theme in (5, ["dark"], {"colors": ["#000"]}, True):
        assert build_embedding_text("carouselTemplates", {"name": "Deck", "theme": theme}) == "Name: Deck"


def test_empty_records_fall_back_to_sentinels():
    assert build_embedding_text("carousels", {}) == "Untitled carousel"
    assert build_embedding_text("carouselTemplates", {}) == "Untitled template"
    assert build_embedding_text("carousels", None) == "Untitled carousel"
    assert build_embedding_text("carousels", {"title": "", "tags": [], "slides": [{}]}) == "Untitled carousel"


def test_unknown_collections_use_template_rules():
    assert build_embedding_text("drafts", {"title": "Fallback title"}) == "Name: Fallback title"


def test_malformed_fields_are_skipped_not_raised():
    fields = {
        "title": 42,
        "slides": ["not a slide", {"placeholder": "flat"}, {"content": "kept"}],
        "tags": "not-a-list",
        "hook": None,
    }
    assert build_embedding_text("carousels", fields) == "Title: 42\nSlide 3: kept"


def test_text_is_deterministic():
    fields = {"title": "Same", "slides": [{"rawText": "a"}, {"rawText": "b"}], "tags": ["x", None]}
    first = build_embedding_text("carousels", fields)
    assert first == build_embedding_text("carousels", dict(fields))
    assert first.endswith("Tags: x,")
