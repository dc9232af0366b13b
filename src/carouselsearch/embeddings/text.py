"""Canonical text for embedding and lexical matching.

Every document kind owns a small dataclass that picks its fields out of the
loosely-typed store record and renders them into a deterministic text blob.
Indexing and the lexical fallback both go through :func:`build_embedding_text`,
so semantic and lexical results describe the same text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Tuple

from carouselsearch.models import CollectionKind

CAROUSEL_SLIDE_FIELDS: Tuple[str, ...] = (
    "rawText",
    "finalText",
    "placeholder.title",
    "placeholder.subtitle",
    "placeholder.body",
    "content",
    "text",
)
TEMPLATE_SLIDE_FIELDS: Tuple[str, ...] = ("placeholder.title", "placeholder.body")
TEMPLATE_NAME_FIELDS: Tuple[str, ...] = ("templateName", "name", "title")


def _lookup(record: Mapping[str, Any], path: str) -> Any:
    value: Any = record
    for key in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def _text(value: Any) -> str:
    if not value:
        return ""
    return value if isinstance(value, str) else str(value)


def _labelled(label: str, value: Any) -> str:
    text = _text(value)
    return f"{label}: {text}" if text else ""


def _tags(value: Any) -> str:
    if not isinstance(value, (list, tuple)) or not value:
        return ""
    return "Tags: " + ", ".join("" if tag is None else str(tag) for tag in value)


def _slides(value: Any, fields: Sequence[str]) -> str:
    if not isinstance(value, (list, tuple)):
        return ""
    rendered: list[str] = []
    for number, slide in enumerate(value, start=1):
        if not isinstance(slide, Mapping):
            continue
        fragments = [_text(_lookup(slide, path)) for path in fields]
        fragments = [fragment for fragment in fragments if fragment]
        if fragments:
            rendered.append(f"Slide {number}: {' '.join(fragments)}")
    return " | ".join(rendered)


def _join(parts: Sequence[str], sentinel: str) -> str:
    return "\n".join(part for part in parts if part).strip() or sentinel


@dataclass(frozen=True)
class CarouselText:
    title: Any = None
    description: Any = None
    category: Any = None
    slides: Any = None
    post_content: Any = None
    hook: Any = None
    tags: Any = None

    sentinel = "Untitled carousel"

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> "CarouselText":
        return cls(
            title=fields.get("title"),
            description=fields.get("description"),
            category=fields.get("category"),
            slides=fields.get("slides"),
            post_content=fields.get("postContent"),
            hook=fields.get("hook"),
            tags=fields.get("tags"),
        )

    def render(self) -> str:
        return _join(
            [
                _labelled("Title", self.title),
                _labelled("Description", self.description),
                _labelled("Category", self.category),
                _slides(self.slides, CAROUSEL_SLIDE_FIELDS),
                _labelled("Post", self.post_content),
                _labelled("Hook", self.hook),
                _tags(self.tags),
            ],
            self.sentinel,
        )


@dataclass(frozen=True)
class TemplateText:
    name: Any = None
    description: Any = None
    category: Any = None
    tags: Any = None
    style: Any = None
    theme: Any = None
    layout: Any = None
    slides: Any = None

    sentinel = "Untitled template"

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> "TemplateText":
        name = next((fields.get(key) for key in TEMPLATE_NAME_FIELDS if fields.get(key)), None)
        theme = fields.get("theme")
        if isinstance(theme, Mapping):
            theme = theme.get("name")
        elif not isinstance(theme, str):
            theme = None
        return cls(
            name=name,
            description=fields.get("description"),
            category=fields.get("category"),
            tags=fields.get("tags"),
            style=fields.get("style"),
            theme=theme,
            layout=fields.get("layout"),
            slides=fields.get("slides"),
        )

    def render(self) -> str:
        return _join(
            [
                _labelled("Name", self.name),
                _labelled("Description", self.description),
                _labelled("Category", self.category),
                _tags(self.tags),
                _labelled("Style", self.style),
                _labelled("Theme", self.theme),
                _labelled("Layout", self.layout),
                _slides(self.slides, TEMPLATE_SLIDE_FIELDS),
            ],
            self.sentinel,
        )


_RENDERERS = {
    CollectionKind.CAROUSEL: CarouselText,
    CollectionKind.TEMPLATE: TemplateText,
}


def build_embedding_text(collection: str | CollectionKind, fields: Mapping[str, Any] | None) -> str:
    """Return the canonical text for a document record.

    ``collection`` may be a collection name or a :class:`CollectionKind`.
    Missing or malformed fields are skipped; the result is never empty.
    """

    kind = collection if isinstance(collection, CollectionKind) else CollectionKind.from_collection(collection)
    renderer = _RENDERERS[kind]
    return renderer.from_fields(fields or {}).render()
