"""HTML form field extraction utilities."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from aiautofill.models import LabelSource, RawChoice, RawFieldDescriptor

_WHITESPACE = re.compile(r"\s+")
_HIDDEN_STYLE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE)

KNOWN_INPUT_TYPES = frozenset(
    {
        "button", "checkbox", "color", "date", "datetime-local", "email", "file", "hidden",
        "image", "month", "number", "password", "radio", "range", "reset", "search",
        "submit", "tel", "text", "time", "url", "week",
    }
)
STEP_SELECTOR = (
    ".step, .steps, .step-indicator, [class*='step'], .progress-step, .wizard-step, [class*='page']"
)
BUTTON_SELECTOR = "button, input[type='submit'], input[type='button']"


@dataclass(frozen=True)
class PageSnapshot:
    """Raw descriptors for one rendered page, before any normalization."""

    url: str = ""
    fields: List[RawFieldDescriptor] = field(default_factory=list)
    buttons: List[Dict[str, Any]] = field(default_factory=list)
    step_indicators: List[Dict[str, Any]] = field(default_factory=list)

    def signature(self) -> Tuple[Tuple[str, str, str], ...]:
        """Identify the page's field set, used to notice that navigation went nowhere."""

        return tuple((raw.name, raw.id, raw.type) for raw in self.fields)

    def next_button(self) -> Optional[Dict[str, Any]]:
        for button in self.buttons:
            if button["purpose"] == "next" and button["isVisible"] and not button["isDisabled"]:
                return button
        return None


def _text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return _WHITESPACE.sub(" ", element.get_text(" ", strip=True)).strip()


def _element_siblings(element: Tag, direction: str) -> Iterator[Tag]:
    siblings = element.previous_siblings if direction == "previous" else element.next_siblings
    for sibling in siblings:
        if isinstance(sibling, Tag):
            yield sibling


def _adjacent_label(element: Tag, direction: str) -> str:
    sibling = next(_element_siblings(element, direction), None)
    if sibling is not None and sibling.name == "label":
        return _text(sibling)
    return ""


def _classes(element: Tag) -> List[str]:
    value = element.get("class") or []
    return value.split() if isinstance(value, str) else list(value)


def _is_hidden(element: Tag) -> bool:
    node: Optional[Tag] = element
    while node is not None and node.name not in (None, "[document]"):
        if node.has_attr("hidden") or _HIDDEN_STYLE.search(node.get("style", "") or ""):
            return True
        if node.name == "input" and (node.get("type") or "").lower() == "hidden":
            return True
        node = node.parent
    return False


def button_purpose(text: str, button_type: str) -> str:
    lowered = text.lower()
    if "next" in lowered or "continue" in lowered or "proceed" in lowered:
        return "next"
    if "previous" in lowered or "back" in lowered:
        return "previous"
    if "submit" in lowered or button_type == "submit":
        return "submit"
    if "cancel" in lowered or "close" in lowered:
        return "cancel"
    if "skip" in lowered:
        return "skip"
    return "unknown"


class FieldDetector:
    """Parse rendered HTML to recover raw form field, button and step metadata."""

    def extract_snapshot(self, html_content: str, url: str = "") -> PageSnapshot:
        """Return every form control, button and step indicator in the document."""

        soup = BeautifulSoup(html_content or "", "lxml")
        return PageSnapshot(
            url=url,
            fields=self.extract_fields(soup),
            buttons=self.extract_buttons(soup),
            step_indicators=self.extract_step_indicators(soup),
        )

    def extract_fields(self, soup: BeautifulSoup) -> List[RawFieldDescriptor]:
        return [self._build_field(element, soup) for element in soup.find_all(["input", "select", "textarea"])]

    def extract_buttons(self, soup: BeautifulSoup) -> List[Dict[str, Any]]:
        buttons: List[Dict[str, Any]] = []
        for element in soup.select(BUTTON_SELECTOR):
            default_type = "submit" if element.name == "button" else ""
            button_type = (element.get("type") or default_type).lower()
            value = element.get("value", "") or ""
            text = _text(element) or value
            buttons.append(
                {
                    "type": "button",
                    "buttonType": button_type,
                    "purpose": button_purpose(text, button_type),
                    "id": element.get("id", "") or "",
                    "name": element.get("name", "") or "",
                    "value": value,
                    "text": text,
                    "className": " ".join(_classes(element)),
                    "isVisible": not _is_hidden(element),
                    "isDisabled": element.has_attr("disabled"),
                }
            )
        return buttons

    def extract_step_indicators(self, soup: BeautifulSoup) -> List[Dict[str, Any]]:
        indicators: List[Dict[str, Any]] = []
        for element in soup.select(STEP_SELECTOR):
            text = _text(element)
            if not text:
                continue
            classes = _classes(element)
            indicators.append(
                {
                    "text": text,
                    "className": " ".join(classes),
                    "isActive": "active" in classes
                    or "current" in classes
                    or element.get("aria-current") == "true",
                }
            )
        return indicators

    def _build_field(self, element: Tag, soup: BeautifulSoup) -> RawFieldDescriptor:
        """Coerce a BeautifulSoup tag into a RawFieldDescriptor."""

        element_id = element.get("id", "") or ""
        name = element.get("name", "") or ""
        field_type = self._resolve_field_type(element)

        options: Tuple[str, ...] = ()
        if element.name == "select":
            options = tuple(_text(option) for option in element.find_all("option"))

        group: Tuple[RawChoice, ...] = ()
        grouped_choices: Tuple[str, ...] = ()
        if field_type in {"radio", "checkbox"}:
            members = soup.find_all("input", attrs={"name": name}) if name else [element]
            group = tuple(self._build_choice(member, soup) for member in members)
            gfield = element.find_parent(class_="gfield")
            if gfield is not None:
                grouped_choices = tuple(
                    _text(choice.find("label")) for choice in gfield.find_all(class_="gchoice")
                )

        return RawFieldDescriptor(
            tag=element.name,
            type=field_type,
            id=element_id,
            name=name,
            placeholder=element.get("placeholder", "") or "",
            labels=self._label_candidates(element, soup),
            options=options,
            group=group,
            grouped_choices=grouped_choices,
        )

    def _build_choice(self, element: Tag, soup: BeautifulSoup) -> RawChoice:
        return RawChoice(
            explicit_label=self._explicit_label(element, soup),
            enclosing_label=_text(element.find_parent("label")),
            adjacent_label=_adjacent_label(element, "next"),
        )

    def _explicit_label(self, element: Tag, soup: BeautifulSoup) -> str:
        element_id = element.get("id")
        if not element_id:
            return ""
        return _text(soup.find("label", attrs={"for": element_id}))

    def _label_candidates(self, element: Tag, soup: BeautifulSoup) -> Dict[LabelSource, str]:
        heading = ""
        fieldset = element.find_parent("fieldset")
        if fieldset is not None:
            heading = _text(fieldset.find("legend"))

        grouped = ""
        gfield = element.find_parent(class_="gfield")
        if gfield is not None:
            grouped = _text(gfield.find(class_="gfield_label"))

        nearby = ""
        if element.parent is not None:
            nearby = _text(element.parent.find("label"))

        candidates = {
            LabelSource.EXPLICIT: self._explicit_label(element, soup),
            LabelSource.HEADING: heading,
            LabelSource.GROUPED: grouped,
            LabelSource.ENCLOSING: _text(element.find_parent("label")),
            LabelSource.PRECEDING: _adjacent_label(element, "previous"),
            LabelSource.NEARBY: nearby,
        }
        return {source: text for source, text in candidates.items() if text}

    def _resolve_field_type(self, element: Tag) -> str:
        if element.name == "select":
            return "select-multiple" if element.has_attr("multiple") else "select-one"
        if element.name == "textarea":
            return "textarea"
        input_type = (element.get("type") or "text").lower()
        return input_type if input_type in KNOWN_INPUT_TYPES else "text"


__all__ = ["FieldDetector", "PageSnapshot", "button_purpose"]
