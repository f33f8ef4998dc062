"""List and list-item processing."""

from __future__ import annotations

from Labelstage.materializer.families import TEXT_LIST, TEXT_LIST_ITEM
from Labelstage.materializer.keys import content_hash
from Labelstage.materializer.processors.base import Collected, ContentFamilyProcessor
from Labelstage.materializer.provisional import Ref
from Labelstage.source import SourceNode, normalize_whitespace


class ListProcessor(ContentFamilyProcessor):
    """One ``text_list`` row per list block plus one row per non-empty item.

    Item sequence numbers count only items that carry text, so an empty
    item neither creates a row nor leaves a gap.
    """

    family = TEXT_LIST.name

    def collect(self, parent_ref: Ref, subtree: SourceNode, *, depth: int = 0) -> Collected:
        out = Collected()
        lst = self._node(
            out,
            TEXT_LIST,
            "list",
            1,
            refs={"text_content_id": parent_ref},
            values={
                "list_type": (subtree.attr("listType") or "unordered").strip(),
                "style_code": subtree.attr("styleCode"),
            },
            depth=depth,
            source=subtree,
        )
        if lst is None:
            return out

        seq = 0
        for item in subtree.children("item"):
            text = normalize_whitespace(item.inner_markup())
            caption_el = item.child("caption")
            caption = normalize_whitespace(caption_el.text()) if caption_el is not None else None
            position = seq + 1
            if text:
                seq = position
            self._node(
                out,
                TEXT_LIST_ITEM,
                "item",
                position,
                refs={"text_list_id": lst.natural_key},
                values={
                    "sequence_number": position,
                    "item_caption": caption or None,
                    "item_text": text,
                    "content_hash": content_hash(text),
                },
                depth=depth,
                source=item,
            )
        return out
