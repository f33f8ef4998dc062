"""Text block processing for section content."""

from __future__ import annotations

from collections import deque

import structlog

from Labelstage.materializer.errors import NodeValidationError
from Labelstage.materializer.families import TEXT_CONTENT
from Labelstage.materializer.keys import content_hash
from Labelstage.materializer.processors.base import Collected, ContentFamilyProcessor
from Labelstage.materializer.processors.highlights import HighlightProcessor
from Labelstage.materializer.processors.lists import ListProcessor
from Labelstage.materializer.processors.tables import TableProcessor
from Labelstage.materializer.provisional import Ref
from Labelstage.source import SourceNode, normalize_whitespace

log = structlog.get_logger()

BLOCK_TYPES = {
    "paragraph": "Paragraph",
    "list": "List",
    "table": "Table",
    "excerpt": "Excerpt",
}
# Containers carry no text of their own; their children are stored separately.
CONTAINER_TYPES = frozenset({"List", "Table", "Excerpt"})


def _block_children(el: SourceNode) -> list[SourceNode]:
    if el.local_name == "section":
        text_el = el.child("text")
        blocks = text_el.children() if text_el is not None else []
        return blocks + el.children("excerpt")
    return el.children()


class TextBlockProcessor(ContentFamilyProcessor):
    """Section text blocks, nested blocks, and everything hanging off them.

    Given a ``<section>`` the blocks are the children of its ``<text>``
    followed by its excerpts; given any other element, its own children.
    Lists and tables are handed to their processors and are not descended
    into; other blocks are walked with an explicit worklist, one level of
    nesting at a time, up to ``max_depth``.
    """

    family = TEXT_CONTENT.name

    def __init__(
        self,
        *,
        max_depth: int = 32,
        lists: ListProcessor | None = None,
        tables: TableProcessor | None = None,
        highlights: HighlightProcessor | None = None,
    ):
        self.max_depth = max_depth
        self.lists = lists or ListProcessor()
        self.tables = tables or TableProcessor()
        self.highlights = highlights or HighlightProcessor()

    def collect(self, parent_ref: Ref, subtree: SourceNode, *, depth: int = 0) -> Collected:
        section_ref = parent_ref
        out = Collected()
        if subtree.local_name == "section":
            out.merge(self.highlights.collect(section_ref, subtree))

        work: deque[tuple[SourceNode, Ref | None, int]] = deque([(subtree, None, depth)])
        while work:
            container, parent_content, level = work.popleft()
            seq = 0
            for block in _block_children(container):
                content_type = BLOCK_TYPES.get(block.local_name)
                if content_type is None:
                    continue
                seq += 1
                if level >= self.max_depth:
                    log.warning(
                        "materializer.validation.skipped",
                        family=self.family,
                        reason="nesting too deep",
                        depth=level,
                    )
                    out.issues.append(
                        NodeValidationError(
                            f"{content_type} #{seq} nested deeper than {self.max_depth}",
                            family=self.family,
                            key=f"{self.family}:{content_type}#{seq}@{level}",
                        )
                    )
                    continue
                text = None
                if content_type not in CONTAINER_TYPES:
                    text = normalize_whitespace(block.inner_markup()) or None
                node = self._node(
                    out,
                    TEXT_CONTENT,
                    content_type,
                    seq,
                    refs={"section_id": section_ref, "parent_text_content_id": parent_content},
                    values={
                        "content_type": content_type,
                        "style_code": block.attr("styleCode"),
                        "sequence_number": seq,
                        "content_text": text,
                        "content_hash": content_hash(text),
                    },
                    depth=level,
                    source=block,
                )
                if node is None:
                    continue
                if content_type == "List":
                    out.merge(self.lists.collect(node.natural_key, block))
                elif content_type == "Table":
                    out.merge(self.tables.collect(node.natural_key, block))
                else:
                    if content_type == "Excerpt":
                        out.merge(self.highlights.collect(section_ref, block))
                    work.append((block, node.natural_key, level + 1))
        return out
