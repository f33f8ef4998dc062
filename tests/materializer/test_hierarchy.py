from Labelstage.materializer.errors import NodeValidationError
from Labelstage.materializer.families import SECTION, SECTION_HIERARCHY
from Labelstage.materializer.hierarchy import EdgeCandidate, HierarchyBuilder
from Labelstage.materializer.keys import NaturalKey


def _key(guid: str) -> NaturalKey:
    return NaturalKey(SECTION.name, (NaturalKey("document", ("d", 1)), guid))


def test_builds_edge_nodes_with_endpoint_refs():
    a, b = _key("a"), _key("b")
    build = HierarchyBuilder().build([EdgeCandidate(parent=a, child=b, sequence=1)])
    assert not build.issues
    (node,) = build.nodes
    assert node.family == SECTION_HIERARCHY.name
    assert node.refs == {"parent_section_id": a, "child_section_id": b}
    assert node.values["sequence_number"] == 1
    assert node.parent_key == a
    assert node.natural_key == NaturalKey(SECTION_HIERARCHY.name, (a, b))


def test_rejects_self_edge():
    a = _key("a")
    build = HierarchyBuilder().build([EdgeCandidate(parent=a, child=a, sequence=1)])
    assert build.nodes == []
    assert len(build.issues) == 1
    assert isinstance(build.issues[0], NodeValidationError)


def test_repeated_pair_emits_one_edge():
    a, b, c = _key("a"), _key("b"), _key("c")
    build = HierarchyBuilder().build(
        [
            EdgeCandidate(parent=a, child=b, sequence=1),
            EdgeCandidate(parent=a, child=b, sequence=1),
            EdgeCandidate(parent=a, child=c, sequence=2),
        ]
    )
    assert [n.values["sequence_number"] for n in build.nodes] == [1, 2]
    assert not build.issues


def test_accepts_real_ids_as_endpoints():
    build = HierarchyBuilder().build([EdgeCandidate(parent=3, child=4, sequence=2)])
    assert build.nodes[0].natural_key.parts == (3, 4)
