"""Discovery over label documents: one read-only pass, no store I/O."""

import pytest

from Labelstage.materializer.context import OrganizationRef, OwnerContext
from Labelstage.materializer.discovery import DiscoveryTraversal
from Labelstage.materializer.errors import NodeValidationError
from Labelstage.materializer.keys import NaturalKey
from Labelstage.source import load_source


def _families(result) -> dict[str, int]:
    out: dict[str, int] = {}
    for node in result.nodes:
        out[node.family] = out.get(node.family, 0) + 1
    return out


def _doc(body: str, *, doc_id: str = '<id root="D-1"/>', extra: str = "") -> str:
    return (
        '<document xmlns="urn:hl7-org:v3">'
        f"{doc_id}{extra}<versionNumber value='2'/>"
        f"<component><structuredBody>{body}</structuredBody></component>"
        "</document>"
    )


def _section(guid: str | None, inner: str = "") -> str:
    ident = f'<id root="{guid}"/>' if guid else ""
    return f"<component><section>{ident}<title>T</title>{inner}</section></component>"


def test_full_label_discovers_every_family(load_fixture):
    result = DiscoveryTraversal().discover(load_fixture("full_label.xml"))

    assert not result.issues
    assert result.document_guid == "a1b2c3d4-0000-4000-8000-000000000001"
    assert result.section_count == 3
    assert len(result.edges) == 1
    assert _families(result) == {
        "organization": 1,
        "document": 1,
        "section": 3,
        "section_text_content": 5,
        "text_list": 1,
        "text_list_item": 2,
        "section_excerpt_highlight": 1,
        "text_table": 1,
        "text_table_column": 2,
        "text_table_row": 4,
        "text_table_cell": 6,
    }


def test_document_values(load_fixture):
    result = DiscoveryTraversal().discover(load_fixture("full_label.xml"))
    doc = next(n for n in result.nodes if n.family == "document")
    assert doc.values["version_number"] == 3
    assert doc.values["set_guid"] == "0f0e0d0c-0000-4000-8000-0000000000aa"
    assert doc.values["title"] == "EXAMPLE tablets, for oral use"
    assert doc.values["code"] == "34391-3"
    assert doc.values["effective_time"] == "20240115"
    assert doc.natural_key == result.document_key
    org = next(n for n in result.nodes if n.family == "organization")
    assert org.values == {"identifier": "123456789", "name": "Acme Pharma Inc."}
    assert doc.refs["author_organization_id"] == org.natural_key


def test_edge_links_parent_and_child_sections(load_fixture):
    result = DiscoveryTraversal().discover(load_fixture("full_label.xml"))
    sections = {n.values["section_guid"]: n for n in result.nodes if n.family == "section"}
    (edge,) = result.edges
    assert edge.parent == sections["11111111-0000-4000-8000-000000000001"].natural_key
    assert edge.child == sections["11111111-0000-4000-8000-000000000002"].natural_key
    assert edge.sequence == 1
    assert sections["11111111-0000-4000-8000-000000000001"].values["section_link_id"] == "S1"


def test_discovery_does_not_touch_source(load_fixture):
    root = load_fixture("full_label.xml")
    before = root.inner_markup()
    DiscoveryTraversal().discover(root)
    assert root.inner_markup() == before


def test_rediscovery_yields_same_keys_in_same_order(load_fixture):
    first = DiscoveryTraversal().discover(load_fixture("full_label.xml"))
    second = DiscoveryTraversal().discover(load_fixture("full_label.xml"))

    assert [n.natural_key for n in first.nodes] == [n.natural_key for n in second.nodes]
    assert [(n.family, n.depth) for n in first.nodes] == [
        (n.family, n.depth) for n in second.nodes
    ]
    assert [(e.parent, e.child, e.sequence) for e in first.edges] == [
        (e.parent, e.child, e.sequence) for e in second.edges
    ]


def test_owner_author_overrides_document_organization(load_fixture):
    owner = OwnerContext(
        submission_file_name="label.xml",
        author=OrganizationRef(identifier="999", name="Relabeler LLC"),
    )
    result = DiscoveryTraversal().discover(load_fixture("full_label.xml"), owner)
    org = next(n for n in result.nodes if n.family == "organization")
    doc = next(n for n in result.nodes if n.family == "document")
    assert org.values["identifier"] == "999"
    assert doc.values["submission_file_name"] == "label.xml"


def test_document_without_id_is_rejected():
    with pytest.raises(NodeValidationError):
        DiscoveryTraversal().discover(load_source(_doc("", doc_id="")))


def test_non_document_root_is_rejected():
    with pytest.raises(NodeValidationError):
        DiscoveryTraversal().discover(load_source("<section><id root='x'/></section>"))


def test_bad_version_number_is_rejected():
    xml = '<document><id root="D-1"/><versionNumber value="two"/></document>'
    with pytest.raises(NodeValidationError):
        DiscoveryTraversal().discover(load_source(xml))


def test_document_without_body_has_only_document_nodes():
    xml = '<document><id root="D-1"/></document>'
    result = DiscoveryTraversal().discover(load_source(xml))
    assert _families(result) == {"document": 1}
    assert result.document_key == NaturalKey("document", ("d-1", 1))


def test_missing_author_organization_is_not_an_issue():
    result = DiscoveryTraversal().discover(load_source(_doc(_section("S-1"))))
    assert "organization" not in _families(result)
    doc = next(n for n in result.nodes if n.family == "document")
    assert doc.refs["author_organization_id"] is None


def test_unkeyed_section_is_reported_and_children_still_discovered():
    child = _section("S-CHILD", "<text><paragraph>child</paragraph></text>")
    xml = _doc(_section(None, f"<text><paragraph>orphan</paragraph></text>{child}"))
    result = DiscoveryTraversal().discover(load_source(xml))

    assert result.section_count == 1
    assert len(result.issues) == 1
    assert isinstance(result.issues[0], NodeValidationError)
    # The edge points at a placeholder that no section ever binds
    (edge,) = result.edges
    assert edge.parent.parts[-1] == "unkeyed-1"
    paragraphs = [n for n in result.nodes if n.family == "section_text_content"]
    assert len(paragraphs) == 2


def test_section_nesting_depth_is_bounded():
    inner = _section("S-3")
    inner = _section("S-2", inner)
    xml = _doc(_section("S-1", inner))
    result = DiscoveryTraversal(max_depth=2).discover(load_source(xml))
    assert result.section_count == 2
    assert len(result.edges) == 1
    assert len(result.issues) == 1
    assert "deeper than 2" in str(result.issues[0])


def test_sibling_sections_are_sequenced_in_document_order():
    xml = _doc(_section("S-1", _section("C-1") + _section("C-2")))
    result = DiscoveryTraversal().discover(load_source(xml))
    assert [e.sequence for e in result.edges] == [1, 2]
    assert [e.child.parts[-1] for e in result.edges] == ["c-1", "c-2"]
