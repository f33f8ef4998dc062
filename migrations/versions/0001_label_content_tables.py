"""label content tables

Revision ID: 0001_label_content
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_label_content"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "organization",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("identifier", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("identifier"),
    )

    op.create_table(
        "document",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("document_guid", sa.String(length=64), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("set_guid", sa.String(length=64), nullable=True),
        sa.Column("code", sa.String(length=64), nullable=True),
        sa.Column("code_system", sa.String(length=64), nullable=True),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("effective_time", sa.String(length=32), nullable=True),
        sa.Column("submission_file_name", sa.String(length=255), nullable=True),
        sa.Column("author_organization_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["author_organization_id"], ["organization.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_guid", "version_number", name="ux_document_guid_version"),
    )
    op.create_index("ix_document_set_guid", "document", ["set_guid"], unique=False)

    op.create_table(
        "section",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("document_id", sa.Integer(), nullable=False),
        sa.Column("section_guid", sa.String(length=64), nullable=False),
        sa.Column("section_link_id", sa.String(length=64), nullable=True),
        sa.Column("code", sa.String(length=64), nullable=True),
        sa.Column("code_system", sa.String(length=64), nullable=True),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("effective_time", sa.String(length=32), nullable=True),
        sa.ForeignKeyConstraint(["document_id"], ["document.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_id", "section_guid", name="ux_section_document_guid"),
    )
    op.create_index("ix_section_document_id", "section", ["document_id"], unique=False)

    op.create_table(
        "section_hierarchy",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("parent_section_id", sa.Integer(), nullable=False),
        sa.Column("child_section_id", sa.Integer(), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "parent_section_id <> child_section_id", name="ck_section_hierarchy_not_self"
        ),
        sa.ForeignKeyConstraint(["parent_section_id"], ["section.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["child_section_id"], ["section.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "parent_section_id", "child_section_id", name="ux_section_hierarchy_pair"
        ),
    )
    op.create_index(
        "ix_section_hierarchy_parent_section_id",
        "section_hierarchy",
        ["parent_section_id"],
        unique=False,
    )
    op.create_index(
        "ix_section_hierarchy_child_section_id",
        "section_hierarchy",
        ["child_section_id"],
        unique=False,
    )

    op.create_table(
        "section_text_content",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("parent_text_content_id", sa.Integer(), nullable=True),
        sa.Column("content_type", sa.String(length=32), nullable=False),
        sa.Column("style_code", sa.String(length=64), nullable=True),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("content_text", sa.Text(), nullable=True),
        sa.Column("content_hash", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["section_id"], ["section.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["parent_text_content_id"], ["section_text_content.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_text_content_natural_key",
        "section_text_content",
        ["section_id", "parent_text_content_id", "content_type", "sequence_number"],
        unique=False,
    )

    op.create_table(
        "text_list",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("text_content_id", sa.Integer(), nullable=False),
        sa.Column("list_type", sa.String(length=32), nullable=False),
        sa.Column("style_code", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(
            ["text_content_id"], ["section_text_content.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("text_content_id"),
    )

    op.create_table(
        "text_list_item",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("text_list_id", sa.Integer(), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("item_caption", sa.String(length=255), nullable=True),
        sa.Column("item_text", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(["text_list_id"], ["text_list.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "text_list_id", "sequence_number", "content_hash", name="ux_text_list_item_key"
        ),
    )
    op.create_index(
        "ix_text_list_item_text_list_id", "text_list_item", ["text_list_id"], unique=False
    )

    op.create_table(
        "text_table",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("text_content_id", sa.Integer(), nullable=False),
        sa.Column("section_table_link", sa.String(length=64), nullable=True),
        sa.Column("width", sa.String(length=32), nullable=True),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("has_header", sa.Boolean(), nullable=False),
        sa.Column("has_footer", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["text_content_id"], ["section_text_content.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("text_content_id"),
    )

    op.create_table(
        "text_table_column",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("text_table_id", sa.Integer(), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("colgroup_sequence_number", sa.Integer(), nullable=True),
        sa.Column("colgroup_style_code", sa.String(length=64), nullable=True),
        sa.Column("colgroup_align", sa.String(length=16), nullable=True),
        sa.Column("colgroup_valign", sa.String(length=16), nullable=True),
        sa.Column("width", sa.String(length=32), nullable=True),
        sa.Column("align", sa.String(length=16), nullable=True),
        sa.Column("valign", sa.String(length=16), nullable=True),
        sa.Column("style_code", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["text_table_id"], ["text_table.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("text_table_id", "sequence_number", name="ux_text_table_column_seq"),
    )
    op.create_index(
        "ix_text_table_column_text_table_id", "text_table_column", ["text_table_id"], unique=False
    )

    op.create_table(
        "text_table_row",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("text_table_id", sa.Integer(), nullable=False),
        sa.Column("row_group_type", sa.String(length=16), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("style_code", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["text_table_id"], ["text_table.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "text_table_id", "row_group_type", "sequence_number", name="ux_text_table_row_seq"
        ),
    )
    op.create_index(
        "ix_text_table_row_text_table_id", "text_table_row", ["text_table_id"], unique=False
    )

    op.create_table(
        "text_table_cell",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("text_table_row_id", sa.Integer(), nullable=False),
        sa.Column("cell_type", sa.String(length=8), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("cell_text", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("row_span", sa.Integer(), nullable=True),
        sa.Column("col_span", sa.Integer(), nullable=True),
        sa.Column("style_code", sa.String(length=64), nullable=True),
        sa.Column("align", sa.String(length=16), nullable=True),
        sa.Column("valign", sa.String(length=16), nullable=True),
        sa.ForeignKeyConstraint(
            ["text_table_row_id"], ["text_table_row.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "text_table_row_id", "sequence_number", "content_hash", name="ux_text_table_cell_key"
        ),
    )
    op.create_index(
        "ix_text_table_cell_text_table_row_id",
        "text_table_cell",
        ["text_table_row_id"],
        unique=False,
    )

    op.create_table(
        "section_excerpt_highlight",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("highlight_text", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(["section_id"], ["section.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("section_id", "content_hash", name="ux_excerpt_highlight_text"),
    )
    op.create_index(
        "ix_section_excerpt_highlight_section_id",
        "section_excerpt_highlight",
        ["section_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(
        "ix_section_excerpt_highlight_section_id", table_name="section_excerpt_highlight"
    )
    op.drop_table("section_excerpt_highlight")
    op.drop_index("ix_text_table_cell_text_table_row_id", table_name="text_table_cell")
    op.drop_table("text_table_cell")
    op.drop_index("ix_text_table_row_text_table_id", table_name="text_table_row")
    op.drop_table("text_table_row")
    op.drop_index("ix_text_table_column_text_table_id", table_name="text_table_column")
    op.drop_table("text_table_column")
    op.drop_table("text_table")
    op.drop_index("ix_text_list_item_text_list_id", table_name="text_list_item")
    op.drop_table("text_list_item")
    op.drop_table("text_list")
    op.drop_index("ix_text_content_natural_key", table_name="section_text_content")
    op.drop_table("section_text_content")
    op.drop_index("ix_section_hierarchy_child_section_id", table_name="section_hierarchy")
    op.drop_index("ix_section_hierarchy_parent_section_id", table_name="section_hierarchy")
    op.drop_table("section_hierarchy")
    op.drop_index("ix_section_document_id", table_name="section")
    op.drop_table("section")
    op.drop_index("ix_document_set_guid", table_name="document")
    op.drop_table("document")
    op.drop_table("organization")
