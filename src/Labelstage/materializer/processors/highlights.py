"""Excerpt highlight processing."""

from __future__ import annotations

import structlog

from Labelstage.materializer.errors import NodeValidationError
from Labelstage.materializer.families import EXCERPT_HIGHLIGHT
from Labelstage.materializer.keys import content_hash
from Labelstage.materializer.processors.base import Collected, ContentFamilyProcessor
from Labelstage.materializer.provisional import Ref
from Labelstage.source import SourceNode, normalize_whitespace

log = structlog.get_logger()


class HighlightProcessor(ContentFamilyProcessor):
    """Highlights directly under an excerpt (or section) element.

    The stored text is the inner markup of ``highlight/text`` with whitespace
    normalized, so nested tables and lists survive as markup. Highlights are
    unique per section by text.
    """

    family = EXCERPT_HIGHLIGHT.name

    def collect(self, parent_ref: Ref, subtree: SourceNode, *, depth: int = 0) -> Collected:
        out = Collected()
        for position, highlight in enumerate(subtree.children("highlight"), start=1):
            text_el = highlight.child("text")
            if text_el is None:
                log.warning("materializer.highlight.no_text", position=position)
                out.issues.append(
                    NodeValidationError(
                        f"highlight #{position} has no text child",
                        family=self.family,
                        key=f"{self.family}:highlight#{position}",
                    )
                )
                continue
            text = normalize_whitespace(text_el.inner_markup())
            self._node(
                out,
                EXCERPT_HIGHLIGHT,
                "highlight",
                position,
                refs={"section_id": parent_ref},
                values={"highlight_text": text, "content_hash": content_hash(text)},
                depth=depth,
                source=highlight,
            )
        return out
