"""Table, column, row and cell processing."""

from __future__ import annotations

from Labelstage.materializer.families import (
    TEXT_TABLE,
    TEXT_TABLE_CELL,
    TEXT_TABLE_COLUMN,
    TEXT_TABLE_ROW,
)
from Labelstage.materializer.keys import content_hash
from Labelstage.materializer.processors.base import (
    Collected,
    ContentFamilyProcessor,
    int_attr,
)
from Labelstage.materializer.provisional import Ref
from Labelstage.models import RowGroupType
from Labelstage.source import SourceNode, normalize_whitespace

ROW_GROUPS = {
    "thead": RowGroupType.header,
    "tbody": RowGroupType.body,
    "tfoot": RowGroupType.footer,
}
CELL_TAGS = ("th", "td")


class TableProcessor(ContentFamilyProcessor):
    family = TEXT_TABLE.name

    def collect(self, parent_ref: Ref, subtree: SourceNode, *, depth: int = 0) -> Collected:
        out = Collected()
        caption_el = subtree.child("caption")
        caption = normalize_whitespace(caption_el.inner_markup()) if caption_el is not None else ""
        table = self._node(
            out,
            TEXT_TABLE,
            "table",
            1,
            refs={"text_content_id": parent_ref},
            values={
                "section_table_link": subtree.attr("ID"),
                "width": subtree.attr("width"),
                "caption": caption or None,
                "has_header": subtree.child("thead") is not None,
                "has_footer": subtree.child("tfoot") is not None,
            },
            depth=depth,
            source=subtree,
        )
        if table is None:
            return out
        self._collect_columns(out, table.natural_key, subtree, depth)
        self._collect_rows(out, table.natural_key, subtree, depth)
        return out

    def _collect_columns(
        self, out: Collected, table_ref: Ref, table_el: SourceNode, depth: int
    ) -> None:
        # colgroup/col first, inheriting colgroup defaults, then standalone col
        seq = 0
        for group_seq, group in enumerate(table_el.children("colgroup"), start=1):
            for col in group.children("col"):
                seq += 1
                self._node(
                    out,
                    TEXT_TABLE_COLUMN,
                    "col",
                    seq,
                    refs={"text_table_id": table_ref},
                    values={
                        "sequence_number": seq,
                        "colgroup_sequence_number": group_seq,
                        "colgroup_style_code": group.attr("styleCode"),
                        "colgroup_align": group.attr("align"),
                        "colgroup_valign": group.attr("valign"),
                        "width": col.attr("width") or group.attr("width"),
                        "align": col.attr("align") or group.attr("align"),
                        "valign": col.attr("valign") or group.attr("valign"),
                        "style_code": col.attr("styleCode") or group.attr("styleCode"),
                    },
                    depth=depth,
                    source=col,
                )
        for col in table_el.children("col"):
            seq += 1
            self._node(
                out,
                TEXT_TABLE_COLUMN,
                "col",
                seq,
                refs={"text_table_id": table_ref},
                values={
                    "sequence_number": seq,
                    "width": col.attr("width"),
                    "align": col.attr("align"),
                    "valign": col.attr("valign"),
                    "style_code": col.attr("styleCode"),
                },
                depth=depth,
                source=col,
            )

    def _collect_rows(
        self, out: Collected, table_ref: Ref, table_el: SourceNode, depth: int
    ) -> None:
        counters = {group: 0 for group in RowGroupType}
        for child in table_el.children():
            name = child.local_name
            if name in ROW_GROUPS:
                group = ROW_GROUPS[name]
                rows = child.children("tr")
            elif name == "tr":
                group = RowGroupType.body
                rows = [child]
            else:
                continue
            for tr in rows:
                counters[group] += 1
                row = self._node(
                    out,
                    TEXT_TABLE_ROW,
                    "tr",
                    counters[group],
                    refs={"text_table_id": table_ref},
                    values={
                        "row_group_type": group.value,
                        "sequence_number": counters[group],
                        "style_code": tr.attr("styleCode"),
                    },
                    depth=depth,
                    source=tr,
                )
                if row is not None:
                    self._collect_cells(out, row.natural_key, tr, depth)

    def _collect_cells(self, out: Collected, row_ref: Ref, tr: SourceNode, depth: int) -> None:
        seq = 0
        for cell in tr.children():
            if cell.local_name not in CELL_TAGS:
                continue
            seq += 1
            text = normalize_whitespace(cell.inner_markup())
            self._node(
                out,
                TEXT_TABLE_CELL,
                cell.local_name,
                seq,
                refs={"text_table_row_id": row_ref},
                values={
                    "cell_type": cell.local_name,
                    "sequence_number": seq,
                    "cell_text": text,
                    "content_hash": content_hash(text, allow_empty=True),
                    "row_span": int_attr(cell, "rowspan"),
                    "col_span": int_attr(cell, "colspan"),
                    "style_code": cell.attr("styleCode"),
                    "align": cell.attr("align"),
                    "valign": cell.attr("valign"),
                },
                depth=depth,
                source=cell,
            )
