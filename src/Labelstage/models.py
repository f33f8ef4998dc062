# models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from Labelstage.db import Base


class RowGroupType(str, enum.Enum):
    header = "Header"
    body = "Body"
    footer = "Footer"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Organization(Base):
    """Shared reference entity; several documents may name the same author."""

    __tablename__ = "organization"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(64), unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


class Document(Base):
    __tablename__ = "document"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_guid: Mapped[str] = mapped_column(String(64))
    version_number: Mapped[int] = mapped_column(Integer, default=1)
    set_guid: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    code_system: Mapped[str | None] = mapped_column(String(64), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    effective_time: Mapped[str | None] = mapped_column(String(32), nullable=True)
    submission_file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    author_organization_id: Mapped[int | None] = mapped_column(
        ForeignKey("organization.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        UniqueConstraint("document_guid", "version_number", name="ux_document_guid_version"),
    )


class Section(Base):
    __tablename__ = "section"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        ForeignKey("document.id", ondelete="CASCADE"), index=True
    )
    section_guid: Mapped[str] = mapped_column(String(64))
    section_link_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    code_system: Mapped[str | None] = mapped_column(String(64), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    effective_time: Mapped[str | None] = mapped_column(String(32), nullable=True)

    __table_args__ = (
        UniqueConstraint("document_id", "section_guid", name="ux_section_document_guid"),
    )


class SectionHierarchy(Base):
    __tablename__ = "section_hierarchy"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parent_section_id: Mapped[int] = mapped_column(
        ForeignKey("section.id", ondelete="CASCADE"), index=True
    )
    child_section_id: Mapped[int] = mapped_column(
        ForeignKey("section.id", ondelete="CASCADE"), index=True
    )
    sequence_number: Mapped[int] = mapped_column(Integer)

    __table_args__ = (
        UniqueConstraint(
            "parent_section_id", "child_section_id", name="ux_section_hierarchy_pair"
        ),
        CheckConstraint(
            "parent_section_id <> child_section_id", name="ck_section_hierarchy_not_self"
        ),
    )


class SectionTextContent(Base):
    __tablename__ = "section_text_content"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    section_id: Mapped[int] = mapped_column(ForeignKey("section.id", ondelete="CASCADE"))
    # Self-reference for blocks nested in an excerpt
    parent_text_content_id: Mapped[int | None] = mapped_column(
        ForeignKey("section_text_content.id", ondelete="CASCADE"), nullable=True
    )
    content_type: Mapped[str] = mapped_column(String(32))  # Paragraph|List|Table|Excerpt
    style_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sequence_number: Mapped[int] = mapped_column(Integer)
    content_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Nullable key columns make a unique constraint unreliable; dedup is enforced upstream.
    __table_args__ = (
        Index(
            "ix_text_content_natural_key",
            "section_id",
            "parent_text_content_id",
            "content_type",
            "sequence_number",
        ),
    )


class TextList(Base):
    __tablename__ = "text_list"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text_content_id: Mapped[int] = mapped_column(
        ForeignKey("section_text_content.id", ondelete="CASCADE"), unique=True
    )
    list_type: Mapped[str] = mapped_column(String(32), default="unordered")
    style_code: Mapped[str | None] = mapped_column(String(64), nullable=True)


class TextListItem(Base):
    __tablename__ = "text_list_item"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text_list_id: Mapped[int] = mapped_column(
        ForeignKey("text_list.id", ondelete="CASCADE"), index=True
    )
    sequence_number: Mapped[int] = mapped_column(Integer)
    item_caption: Mapped[str | None] = mapped_column(String(255), nullable=True)
    item_text: Mapped[str] = mapped_column(Text)
    content_hash: Mapped[str] = mapped_column(String(64))

    __table_args__ = (
        UniqueConstraint(
            "text_list_id", "sequence_number", "content_hash", name="ux_text_list_item_key"
        ),
    )


class TextTable(Base):
    __tablename__ = "text_table"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text_content_id: Mapped[int] = mapped_column(
        ForeignKey("section_text_content.id", ondelete="CASCADE"), unique=True
    )
    section_table_link: Mapped[str | None] = mapped_column(String(64), nullable=True)
    width: Mapped[str | None] = mapped_column(String(32), nullable=True)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    has_header: Mapped[bool] = mapped_column(Boolean, default=False)
    has_footer: Mapped[bool] = mapped_column(Boolean, default=False)


class TextTableColumn(Base):
    __tablename__ = "text_table_column"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text_table_id: Mapped[int] = mapped_column(
        ForeignKey("text_table.id", ondelete="CASCADE"), index=True
    )
    sequence_number: Mapped[int] = mapped_column(Integer)
    colgroup_sequence_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    colgroup_style_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    colgroup_align: Mapped[str | None] = mapped_column(String(16), nullable=True)
    colgroup_valign: Mapped[str | None] = mapped_column(String(16), nullable=True)
    width: Mapped[str | None] = mapped_column(String(32), nullable=True)
    align: Mapped[str | None] = mapped_column(String(16), nullable=True)
    valign: Mapped[str | None] = mapped_column(String(16), nullable=True)
    style_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("text_table_id", "sequence_number", name="ux_text_table_column_seq"),
    )


class TextTableRow(Base):
    __tablename__ = "text_table_row"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text_table_id: Mapped[int] = mapped_column(
        ForeignKey("text_table.id", ondelete="CASCADE"), index=True
    )
    row_group_type: Mapped[str] = mapped_column(String(16))  # RowGroupType value
    sequence_number: Mapped[int] = mapped_column(Integer)
    style_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "text_table_id", "row_group_type", "sequence_number", name="ux_text_table_row_seq"
        ),
    )


class TextTableCell(Base):
    __tablename__ = "text_table_cell"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text_table_row_id: Mapped[int] = mapped_column(
        ForeignKey("text_table_row.id", ondelete="CASCADE"), index=True
    )
    cell_type: Mapped[str] = mapped_column(String(8))  # th|td
    sequence_number: Mapped[int] = mapped_column(Integer)
    cell_text: Mapped[str] = mapped_column(Text, default="")
    content_hash: Mapped[str] = mapped_column(String(64))
    row_span: Mapped[int | None] = mapped_column(Integer, nullable=True)
    col_span: Mapped[int | None] = mapped_column(Integer, nullable=True)
    style_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    align: Mapped[str | None] = mapped_column(String(16), nullable=True)
    valign: Mapped[str | None] = mapped_column(String(16), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "text_table_row_id", "sequence_number", "content_hash", name="ux_text_table_cell_key"
        ),
    )


class SectionExcerptHighlight(Base):
    __tablename__ = "section_excerpt_highlight"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    section_id: Mapped[int] = mapped_column(
        ForeignKey("section.id", ondelete="CASCADE"), index=True
    )
    highlight_text: Mapped[str] = mapped_column(Text)
    content_hash: Mapped[str] = mapped_column(String(64))

    __table_args__ = (
        UniqueConstraint("section_id", "content_hash", name="ux_excerpt_highlight_text"),
    )
