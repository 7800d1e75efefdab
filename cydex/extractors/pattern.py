"""
Pattern-driven extraction.

Regular expressions pull office names, street addresses and phone
numbers out of page text. Matches are paired by position: the i-th
office gets the i-th address and i-th phone when those exist. Pages that
list offices without an address for each one will pair fields with the
wrong office; this extractor is a heuristic, not a page parser.
"""

import re
from typing import List, Optional

from ..logger import get_logger, StructuredLogger
from ..models import ExtractionResult, PartialEntity
from .common import stamp_entity, visible_text

SUCCESS_CONFIDENCE = 0.6
EMPTY_CONFIDENCE = 0.1
NO_HINT_CONFIDENCE = 0.0

OFFICE_RE = re.compile(
    r"\b(?:Region|Field Office|Resident Agency|Laboratory)[ \t]+[\w-]+(?:[ \t]+[\w-]+)*",
    re.IGNORECASE,
)
ADDRESS_RE = re.compile(
    r"\b\d+[ \t]+[\w \t,.-]*?\b(?:Street|St|Avenue|Ave|Boulevard|Blvd|Drive|Dr|Road|Rd)\b",
    re.IGNORECASE,
)
PHONE_RE = re.compile(r"\(?\d{3}\)?[-. \t]?\d{3}[-. \t]?\d{4}")


def _nth(matches: List[str], i: int) -> Optional[str]:
    return matches[i].strip() if i < len(matches) else None


class PatternExtractor:
    method = "pattern"

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or get_logger()

    def extract(self, content: str, source) -> ExtractionResult:
        if not source.selector:
            return ExtractionResult(
                entities=[],
                confidence=NO_HINT_CONFIDENCE,
                method=self.method,
                errors=["Source has no selector or pattern hint"],
            )

        text = visible_text(content, source.parse_type, source.selector)
        offices = [m.group(0) for m in OFFICE_RE.finditer(text)]
        addresses = [m.group(0) for m in ADDRESS_RE.finditer(text)]
        phones = [m.group(0) for m in PHONE_RE.finditer(text)]

        if offices and (len(addresses) not in (0, len(offices)) or len(phones) not in (0, len(offices))):
            self.logger.debug(
                "Pattern match counts differ, pairing by position",
                source_id=source.id,
                offices=len(offices),
                addresses=len(addresses),
                phones=len(phones),
            )

        entities: List[PartialEntity] = []
        for i, office in enumerate(offices):
            partial = PartialEntity(
                office_name=office.strip(),
                address=_nth(addresses, i),
                phone=_nth(phones, i),
            )
            entities.append(stamp_entity(partial, source))

        return ExtractionResult(
            entities=entities,
            confidence=SUCCESS_CONFIDENCE if entities else EMPTY_CONFIDENCE,
            method=self.method,
        )
