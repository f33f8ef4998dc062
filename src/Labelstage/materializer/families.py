"""Row family registry.

Each family maps to one table and declares how its rows are keyed, scoped
and ordered. ``rank`` is the dependency level: a family may only reference
families of a lower rank (or, for self-referencing text content, shallower
depth within the same rank).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from Labelstage import models
from Labelstage.materializer.errors import NodeValidationError
from Labelstage.materializer.keys import NaturalKey


@dataclass(frozen=True)
class FamilySpec:
    name: str
    model: type[models.Base]
    rank: int
    key_columns: tuple[str, ...]
    scope_column: str
    ref_columns: tuple[str, ...] = ()
    required: tuple[str, ...] = ()
    shared: bool = False

    def natural_key(self, refs: Mapping[str, Any], values: Mapping[str, Any]) -> NaturalKey:
        parts = tuple(
            refs.get(col) if col in self.ref_columns else values.get(col)
            for col in self.key_columns
        )
        return NaturalKey(self.name, parts)

    def validate(self, values: Mapping[str, Any], refs: Mapping[str, Any]) -> None:
        """Raise NodeValidationError when a required field is missing or blank."""
        for col in self.required:
            value = refs.get(col) if col in self.ref_columns else values.get(col)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise NodeValidationError(
                    f"{self.name} is missing required field {col!r}", family=self.name
                )


ORGANIZATION = FamilySpec(
    name="organization",
    model=models.Organization,
    rank=0,
    key_columns=("identifier",),
    scope_column="identifier",
    required=("identifier",),
    shared=True,
)
DOCUMENT = FamilySpec(
    name="document",
    model=models.Document,
    rank=1,
    key_columns=("document_guid", "version_number"),
    scope_column="document_guid",
    ref_columns=("author_organization_id",),
    required=("document_guid", "version_number"),
)
SECTION = FamilySpec(
    name="section",
    model=models.Section,
    rank=2,
    key_columns=("document_id", "section_guid"),
    scope_column="document_id",
    ref_columns=("document_id",),
    required=("document_id", "section_guid"),
)
SECTION_HIERARCHY = FamilySpec(
    name="section_hierarchy",
    model=models.SectionHierarchy,
    rank=3,
    key_columns=("parent_section_id", "child_section_id"),
    scope_column="parent_section_id",
    ref_columns=("parent_section_id", "child_section_id"),
    required=("parent_section_id", "child_section_id"),
)
TEXT_CONTENT = FamilySpec(
    name="section_text_content",
    model=models.SectionTextContent,
    rank=4,
    key_columns=(
        "section_id",
        "parent_text_content_id",
        "content_type",
        "sequence_number",
        "content_hash",
    ),
    scope_column="section_id",
    ref_columns=("section_id", "parent_text_content_id"),
    required=("section_id", "content_type", "sequence_number"),
)
TEXT_LIST = FamilySpec(
    name="text_list",
    model=models.TextList,
    rank=5,
    key_columns=("text_content_id",),
    scope_column="text_content_id",
    ref_columns=("text_content_id",),
    required=("text_content_id",),
)
TEXT_TABLE = FamilySpec(
    name="text_table",
    model=models.TextTable,
    rank=5,
    key_columns=("text_content_id",),
    scope_column="text_content_id",
    ref_columns=("text_content_id",),
    required=("text_content_id",),
)
EXCERPT_HIGHLIGHT = FamilySpec(
    name="section_excerpt_highlight",
    model=models.SectionExcerptHighlight,
    rank=5,
    key_columns=("section_id", "content_hash"),
    scope_column="section_id",
    ref_columns=("section_id",),
    required=("section_id", "highlight_text", "content_hash"),
)
TEXT_LIST_ITEM = FamilySpec(
    name="text_list_item",
    model=models.TextListItem,
    rank=6,
    key_columns=("text_list_id", "sequence_number", "content_hash"),
    scope_column="text_list_id",
    ref_columns=("text_list_id",),
    required=("text_list_id", "item_text", "content_hash"),
)
TEXT_TABLE_COLUMN = FamilySpec(
    name="text_table_column",
    model=models.TextTableColumn,
    rank=6,
    key_columns=("text_table_id", "sequence_number"),
    scope_column="text_table_id",
    ref_columns=("text_table_id",),
    required=("text_table_id", "sequence_number"),
)
TEXT_TABLE_ROW = FamilySpec(
    name="text_table_row",
    model=models.TextTableRow,
    rank=6,
    key_columns=("text_table_id", "row_group_type", "sequence_number"),
    scope_column="text_table_id",
    ref_columns=("text_table_id",),
    required=("text_table_id", "row_group_type", "sequence_number"),
)
TEXT_TABLE_CELL = FamilySpec(
    name="text_table_cell",
    model=models.TextTableCell,
    rank=7,
    key_columns=("text_table_row_id", "sequence_number", "content_hash"),
    scope_column="text_table_row_id",
    ref_columns=("text_table_row_id",),
    required=("text_table_row_id", "cell_type", "sequence_number", "content_hash"),
)

FAMILIES: dict[str, FamilySpec] = {
    spec.name: spec
    for spec in (
        ORGANIZATION,
        DOCUMENT,
        SECTION,
        SECTION_HIERARCHY,
        TEXT_CONTENT,
        TEXT_LIST,
        TEXT_TABLE,
        EXCERPT_HIGHLIGHT,
        TEXT_LIST_ITEM,
        TEXT_TABLE_COLUMN,
        TEXT_TABLE_ROW,
        TEXT_TABLE_CELL,
    )
}


def get_family(name: str) -> FamilySpec:
    try:
        return FAMILIES[name]
    except KeyError:
        raise KeyError(f"unknown row family {name!r}") from None
