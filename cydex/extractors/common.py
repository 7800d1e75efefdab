"""Shared helpers for the extraction strategies."""

from typing import Optional

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from ..clock import utcnow
from ..models import PartialEntity, ROLE_TYPES
from ..normalize import derive_entity_id
from ..schema import normalize_parse_type
from ..taxonomy import assign_priority, infer_role_type, infer_sectors


def looks_like_html(content: str) -> bool:
    head = content.lstrip()[:200].lower()
    return head.startswith("<!doctype html") or "<html" in head or "<body" in head


def visible_text(content: str, parse_type: str = "html", selector: Optional[str] = None) -> str:
    """
    Return the text an extractor should read.

    HTML is reduced to its visible text, one block per line. When a CSS
    selector is given and matches, only the matching elements are kept.
    Non-HTML content is returned unchanged.
    """
    if normalize_parse_type(parse_type) != "html" or not looks_like_html(content):
        return content

    soup = BeautifulSoup(content, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    if selector:
        try:
            selected = soup.select(selector)
        except SelectorSyntaxError:
            # Not a CSS selector; treat it as a plain pattern hint
            selected = []
        if selected:
            return "\n".join(el.get_text("\n", strip=True) for el in selected)

    return soup.get_text("\n", strip=True)


def stamp_entity(partial: PartialEntity, source) -> PartialEntity:
    """
    Fill in the fields every extraction strategy derives the same way:
    id, agency, source url, verification time, role, sectors and priority.
    """
    partial.agency = source.agency
    partial.id = derive_entity_id(source.agency, partial.office_name)
    partial.source_url = source.url
    partial.last_verified = utcnow()

    role = (partial.role_type or "").strip().lower()
    partial.role_type = role if role in ROLE_TYPES else infer_role_type(partial.office_name)
    partial.sectors = infer_sectors(source.agency, partial.functions or [])
    partial.priority = assign_priority(partial.role_type)
    return partial
