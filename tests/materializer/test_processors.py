"""Content-family processors: lists, tables, highlights and text blocks."""

import pytest
from sqlalchemy import func, select
from structlog.testing import capture_logs

from Labelstage import models
from Labelstage.materializer.errors import NodeValidationError
from Labelstage.materializer.keys import NaturalKey, content_hash
from Labelstage.materializer.policy import FlushPolicy
from Labelstage.materializer.processors import (
    HighlightProcessor,
    ListProcessor,
    TableProcessor,
    TextBlockProcessor,
)
from Labelstage.materializer.result import MaterializationResult
from Labelstage.source import load_source

PARENT = NaturalKey("section_text_content", (1, None, "List", 1, None))


def _by_family(collected, family):
    return [n for n in collected.nodes if n.family == family]


class TestListProcessor:
    def test_list_type_defaults_to_unordered(self):
        out = ListProcessor().collect(PARENT, load_source("<list><item>a</item></list>"))
        (lst,) = _by_family(out, "text_list")
        assert lst.values["list_type"] == "unordered"
        assert lst.refs["text_content_id"] == PARENT

    def test_items_are_sequenced_and_captioned(self):
        xml = (
            '<list listType="ordered" styleCode="Arabic">'
            "<item>first</item>"
            "<item><caption>b.</caption>second</item>"
            "</list>"
        )
        out = ListProcessor().collect(PARENT, load_source(xml))
        (lst,) = _by_family(out, "text_list")
        assert lst.values["list_type"] == "ordered"
        assert lst.values["style_code"] == "Arabic"
        items = _by_family(out, "text_list_item")
        assert [i.values["sequence_number"] for i in items] == [1, 2]
        assert items[1].values["item_caption"] == "b."
        assert items[1].values["item_text"] == "<caption>b.</caption>second"
        assert items[0].refs["text_list_id"] == lst.natural_key
        assert items[0].values["content_hash"] == content_hash("first")

    def test_empty_item_is_skipped_without_a_gap(self):
        xml = "<list><item>one</item><item>  </item><item>three</item></list>"
        with capture_logs() as logs:
            out = ListProcessor().collect(PARENT, load_source(xml))
        items = _by_family(out, "text_list_item")
        assert [i.values["item_text"] for i in items] == ["one", "three"]
        assert [i.values["sequence_number"] for i in items] == [1, 2]
        assert len(out.issues) == 1
        assert isinstance(out.issues[0], NodeValidationError)
        assert out.issues[0].family == "text_list_item"
        assert any(e["event"] == "materializer.validation.skipped" for e in logs)

    def test_nested_markup_is_preserved_in_item_text(self):
        xml = '<list><item>Use <content styleCode="bold">only</content> as directed</item></list>'
        out = ListProcessor().collect(PARENT, load_source(xml))
        (item,) = _by_family(out, "text_list_item")
        expected = 'Use <content styleCode="bold">only</content> as directed'
        assert item.values["item_text"] == expected


TABLE = """
<table width="100%" ID="T1">
  <caption>Table 1</caption>
  <colgroup align="left" styleCode="Lrule" width="20%">
    <col width="50%"/>
    <col align="center"/>
  </colgroup>
  <col valign="top"/>
  <thead><tr><th>Dose</th><th>Frequency</th><th/></tr></thead>
  <tbody>
    <tr><td>10 mg</td><td rowspan="2">daily</td><td colspan="0">x</td></tr>
    <tr><td>20 mg</td></tr>
  </tbody>
  <tr><td>loose</td></tr>
  <tfoot><tr><td colspan="3">Take with food.</td></tr></tfoot>
</table>
"""


class TestTableProcessor:
    def test_table_row_values(self):
        out = TableProcessor().collect(PARENT, load_source(TABLE))
        (table,) = _by_family(out, "text_table")
        assert table.values["caption"] == "Table 1"
        assert table.values["width"] == "100%"
        assert table.values["section_table_link"] == "T1"
        assert table.values["has_header"] is True
        assert table.values["has_footer"] is True

    def test_columns_inherit_colgroup_defaults(self):
        out = TableProcessor().collect(PARENT, load_source(TABLE))
        cols = _by_family(out, "text_table_column")
        assert [c.values["sequence_number"] for c in cols] == [1, 2, 3]
        first, second, loose = cols
        assert first.values["width"] == "50%"
        assert first.values["align"] == "left"
        assert first.values["colgroup_sequence_number"] == 1
        assert first.values["colgroup_style_code"] == "Lrule"
        assert second.values["align"] == "center"
        assert second.values["width"] == "20%"
        assert loose.values["valign"] == "top"
        assert loose.values.get("colgroup_sequence_number") is None

    def test_rows_are_grouped_and_counted_per_group(self):
        out = TableProcessor().collect(PARENT, load_source(TABLE))
        rows = [
            (r.values["row_group_type"], r.values["sequence_number"])
            for r in _by_family(out, "text_table_row")
        ]
        assert rows == [("Header", 1), ("Body", 1), ("Body", 2), ("Body", 3), ("Footer", 1)]

    def test_cells_keep_positive_spans_and_empty_text(self):
        out = TableProcessor().collect(PARENT, load_source(TABLE))
        assert not out.issues
        cells = _by_family(out, "text_table_cell")
        assert len(cells) == 3 + 3 + 1 + 1 + 1
        header_blank = cells[2]
        assert header_blank.values["cell_type"] == "th"
        assert header_blank.values["cell_text"] == ""
        assert header_blank.values["content_hash"] == content_hash("", allow_empty=True)
        daily = cells[4]
        assert daily.values["row_span"] == 2
        assert daily.values["col_span"] is None
        zero_span = cells[5]
        assert zero_span.values["col_span"] is None
        assert cells[-1].values["col_span"] == 3

    def test_cells_reference_their_row(self):
        out = TableProcessor().collect(PARENT, load_source(TABLE))
        rows = _by_family(out, "text_table_row")
        cells = _by_family(out, "text_table_cell")
        assert cells[0].refs["text_table_row_id"] == rows[0].natural_key
        assert rows[0].refs["text_table_id"] == _by_family(out, "text_table")[0].natural_key


class TestHighlightProcessor:
    def test_highlight_text_is_inner_markup(self):
        xml = (
            "<excerpt><highlight><text>"
            "<paragraph>Boxed   warning</paragraph>"
            "</text></highlight></excerpt>"
        )
        out = HighlightProcessor().collect(5, load_source(xml))
        (hl,) = out.nodes
        assert hl.values["highlight_text"] == "<paragraph>Boxed warning</paragraph>"
        assert hl.refs["section_id"] == 5
        assert hl.natural_key.parts == (5, content_hash("<paragraph>Boxed warning</paragraph>"))

    def test_missing_or_empty_text_is_an_issue(self):
        xml = (
            "<excerpt>"
            "<highlight><caption>no text</caption></highlight>"
            "<highlight><text>   </text></highlight>"
            "<highlight><text>kept</text></highlight>"
            "</excerpt>"
        )
        out = HighlightProcessor().collect(5, load_source(xml))
        assert [n.values["highlight_text"] for n in out.nodes] == ["kept"]
        assert len(out.issues) == 2
        assert all(i.family == "section_excerpt_highlight" for i in out.issues)


class TestTextBlockProcessor:
    def test_blocks_under_section_text_and_excerpt(self):
        xml = (
            "<section><text>"
            "<paragraph>one</paragraph>"
            "<list><item>a</item></list>"
            "<table><tbody><tr><td>c</td></tr></tbody></table>"
            "<renderMultiMedia referencedObject='MM1'/>"
            "</text>"
            "<excerpt><highlight><text>h</text></highlight></excerpt>"
            "</section>"
        )
        out = TextBlockProcessor().collect(9, load_source(xml))
        blocks = _by_family(out, "section_text_content")
        assert [(b.values["content_type"], b.values["sequence_number"]) for b in blocks] == [
            ("Paragraph", 1),
            ("List", 2),
            ("Table", 3),
            ("Excerpt", 4),
        ]
        assert blocks[0].values["content_hash"] == content_hash("one")
        assert blocks[1].values["content_text"] is None
        assert blocks[1].values["content_hash"] is None
        assert out.count("text_list") == 1
        assert out.count("text_table") == 1
        assert out.count("section_excerpt_highlight") == 1
        (hl,) = _by_family(out, "section_excerpt_highlight")
        assert hl.refs["section_id"] == 9

    def test_nested_blocks_reference_their_parent_block(self):
        xml = (
            "<section><excerpt>"
            "<paragraph>inner one</paragraph>"
            "<paragraph>inner two</paragraph>"
            "</excerpt></section>"
        )
        out = TextBlockProcessor().collect(9, load_source(xml))
        excerpt, first, second = _by_family(out, "section_text_content")
        assert excerpt.depth == 0
        assert excerpt.refs["parent_text_content_id"] is None
        assert first.depth == second.depth == 1
        assert first.refs["parent_text_content_id"] == excerpt.natural_key
        assert [first.sequence, second.sequence] == [1, 2]

    def test_same_text_at_different_positions_gives_distinct_keys(self):
        xml = (
            "<section><text>"
            "<paragraph>same</paragraph><paragraph>same</paragraph>"
            "</text></section>"
        )
        out = TextBlockProcessor().collect(9, load_source(xml))
        a, b = _by_family(out, "section_text_content")
        assert a.natural_key != b.natural_key

    def test_nesting_beyond_limit_is_reported(self):
        xml = "<section><excerpt><excerpt><paragraph>deep</paragraph></excerpt></excerpt></section>"
        out = TextBlockProcessor(max_depth=2).collect(9, load_source(xml))
        assert [b.depth for b in _by_family(out, "section_text_content")] == [0, 1]
        assert len(out.issues) == 1
        assert "nested deeper than 2" in str(out.issues[0])


async def _seed_section(db) -> int:
    doc = models.Document(document_guid="seed-doc", version_number=1)
    db.add(doc)
    await db.flush()
    section = models.Section(document_id=doc.id, section_guid="seed-section")
    db.add(section)
    await db.commit()
    return section.id


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
@pytest.mark.parametrize("policy", [FlushPolicy.eager, FlushPolicy.deferred])
async def test_materialize_content_for_is_idempotent(db, policy):
    section_id = await _seed_section(db)
    subtree = load_source(
        "<section><text>"
        "<paragraph>Intro</paragraph>"
        "<list><item>a</item><item>b</item></list>"
        "</text></section>"
    )
    processor = TextBlockProcessor()

    created = await processor.materialize_content_for(db, section_id, subtree, flush_policy=policy)
    assert created == 2 + 1 + 2
    assert await _count(db, models.SectionTextContent) == 2
    assert await _count(db, models.TextListItem) == 2

    result = MaterializationResult()
    again = await processor.materialize_content_for(
        db, section_id, subtree, flush_policy=policy, result=result
    )
    assert again == 0
    assert result.duplicates["section_text_content"] == 2
    assert await _count(db, models.SectionTextContent) == 2


@pytest.mark.asyncio
async def test_list_processor_under_existing_text_block(db):
    section_id = await _seed_section(db)
    block = models.SectionTextContent(
        section_id=section_id, content_type="List", sequence_number=1
    )
    db.add(block)
    await db.commit()

    result = MaterializationResult()
    created = await ListProcessor().materialize_content_for(
        db,
        block.id,
        load_source("<list><item>x</item><item/><item>y</item></list>"),
        result=result,
    )
    assert created == 3
    assert result.status == "partial"
    assert result.discarded[0].family == "text_list_item"
    rows = (
        await db.execute(
            select(models.TextListItem.sequence_number, models.TextListItem.item_text).order_by(
                models.TextListItem.sequence_number
            )
        )
    ).all()
    assert [tuple(r) for r in rows] == [(1, "x"), (2, "y")]


@pytest.mark.asyncio
async def test_shared_result_returns_per_call_counts(db):
    section_id = await _seed_section(db)
    blocks = [
        models.SectionTextContent(section_id=section_id, content_type="List", sequence_number=n)
        for n in (1, 2)
    ]
    db.add_all(blocks)
    await db.commit()

    result = MaterializationResult()
    counts = [
        await ListProcessor().materialize_content_for(
            db, block.id, load_source(f"<list><item>{text}</item></list>"), result=result
        )
        for block, text in zip(blocks, ["first", "second"])
    ]
    assert counts == [2, 2]
    assert result.created == {"text_list": 2, "text_list_item": 2}
