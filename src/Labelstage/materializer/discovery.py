"""Single read-only pass over a label document.

Discovery walks the document once and returns every node the pipeline will
stage (organization, document, sections, text content and the list, table
and highlight rows under it) plus section hierarchy edges in natural-key
form. It performs no store I/O. Malformed pieces are skipped and reported as
issues; only a document without an identifier is rejected outright.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

import structlog

from Labelstage.materializer.context import OwnerContext
from Labelstage.materializer.errors import MaterializerError, NodeValidationError
from Labelstage.materializer.families import DOCUMENT, ORGANIZATION, SECTION
from Labelstage.materializer.hierarchy import EdgeCandidate
from Labelstage.materializer.keys import NaturalKey
from Labelstage.materializer.nodes import ContentNode, make_node
from Labelstage.materializer.processors.text import TextBlockProcessor
from Labelstage.source import SourceNode, normalize_whitespace

log = structlog.get_logger()


def _path(node: SourceNode | None, *names: str) -> SourceNode | None:
    for name in names:
        if node is None:
            return None
        node = node.child(name)
    return node


def _attr(node: SourceNode | None, name: str) -> str | None:
    if node is None:
        return None
    value = node.attr(name)
    return value.strip() if value and value.strip() else None


def _text(node: SourceNode | None) -> str | None:
    if node is None:
        return None
    return normalize_whitespace(node.text()) or None


def _guid(value: str | None) -> str | None:
    return value.lower() if value else None


@dataclass
class DiscoveryResult:
    document_guid: str | None = None
    document_key: NaturalKey | None = None
    nodes: list[ContentNode] = field(default_factory=list)
    edges: list[EdgeCandidate] = field(default_factory=list)
    issues: list[MaterializerError] = field(default_factory=list)
    section_count: int = 0


class DiscoveryTraversal:
    def __init__(self, *, max_depth: int = 32, text_processor: TextBlockProcessor | None = None):
        self.max_depth = max_depth
        self.text = text_processor or TextBlockProcessor(max_depth=max_depth)

    def discover(self, root: SourceNode, owner: OwnerContext | None = None) -> DiscoveryResult:
        """Discover all nodes and edges under ``root``.

        Raises NodeValidationError when the document itself cannot be keyed.
        """
        owner = owner or OwnerContext()
        out = DiscoveryResult()
        if root.local_name != "document":
            raise NodeValidationError(
                f"expected a <document> root, found <{root.local_name}>", family=DOCUMENT.name
            )

        org_key = self._organization(root, owner, out)
        doc = self._document(root, owner, org_key)
        out.nodes.append(doc)
        out.document_key = doc.natural_key
        out.document_guid = doc.values["document_guid"]

        body = _path(root, "component", "structuredBody")
        if body is None:
            log.warning("materializer.discovery.no_body", document_guid=out.document_guid)
            return out

        work: deque[tuple[SourceNode, NaturalKey | None, int, int]] = deque()
        top = [c.child("section") for c in body.children("component")]
        for seq, sec in enumerate((s for s in top if s is not None), start=1):
            work.append((sec, None, 0, seq))

        unkeyed = 0
        while work:
            sec, parent_key, depth, seq = work.popleft()
            if depth >= self.max_depth:
                out.issues.append(
                    NodeValidationError(
                        f"section nested deeper than {self.max_depth}",
                        family=SECTION.name,
                        key=f"{SECTION.name}:depth{depth}#{seq}",
                    )
                )
                continue

            section_key = self._section(sec, doc.natural_key, seq, out)
            if section_key is None:
                # Keep walking: content under it will fail to resolve and be
                # reported, child sections are still valid rows of their own.
                unkeyed += 1
                placeholder = (doc.natural_key, None, f"unkeyed-{unkeyed}")
                section_key = NaturalKey(SECTION.name, placeholder)
            else:
                out.section_count += 1

            if parent_key is not None:
                out.edges.append(EdgeCandidate(parent=parent_key, child=section_key, sequence=seq))

            content = self.text.collect(section_key, sec)
            out.nodes.extend(content.nodes)
            out.issues.extend(content.issues)

            children = [c.child("section") for c in sec.children("component")]
            for child_seq, child in enumerate((c for c in children if c is not None), start=1):
                work.append((child, section_key, depth + 1, child_seq))

        log.info(
            "materializer.discovery.completed",
            document_guid=out.document_guid,
            sections=out.section_count,
            nodes=len(out.nodes),
            edges=len(out.edges),
            issues=len(out.issues),
        )
        return out

    def _organization(
        self, root: SourceNode, owner: OwnerContext, out: DiscoveryResult
    ) -> NaturalKey | None:
        if owner.author is not None:
            identifier, name = owner.author.identifier, owner.author.name
        else:
            org_el = _path(root, "author", "assignedEntity", "representedOrganization")
            if org_el is None:
                return None
            id_el = org_el.child("id")
            identifier = _attr(id_el, "extension") or _attr(id_el, "root")
            name = _text(org_el.child("name"))
        try:
            node = make_node(
                ORGANIZATION,
                "organization",
                1,
                values={"identifier": identifier, "name": name},
            )
        except NodeValidationError as exc:
            log.warning(
                "materializer.validation.skipped", family=ORGANIZATION.name, reason=str(exc)
            )
            exc.key = f"{ORGANIZATION.name}:author"
            out.issues.append(exc)
            return None
        out.nodes.append(node)
        return node.natural_key

    def _document(
        self, root: SourceNode, owner: OwnerContext, org_key: NaturalKey | None
    ) -> ContentNode:
        raw_version = _attr(root.child("versionNumber"), "value")
        try:
            version = int(raw_version) if raw_version else 1
        except ValueError:
            raise NodeValidationError(
                f"document versionNumber {raw_version!r} is not an integer", family=DOCUMENT.name
            ) from None
        code_el = root.child("code")
        return make_node(
            DOCUMENT,
            "document",
            1,
            refs={"author_organization_id": org_key},
            values={
                "document_guid": _guid(_attr(root.child("id"), "root")),
                "version_number": version,
                "set_guid": _guid(_attr(root.child("setId"), "root")),
                "code": _attr(code_el, "code"),
                "code_system": _attr(code_el, "codeSystem"),
                "display_name": _attr(code_el, "displayName"),
                "title": _text(root.child("title")),
                "effective_time": _attr(root.child("effectiveTime"), "value"),
                "submission_file_name": owner.submission_file_name,
            },
            source=root,
        )

    def _section(
        self, sec: SourceNode, doc_key: NaturalKey, seq: int, out: DiscoveryResult
    ) -> NaturalKey | None:
        code_el = sec.child("code")
        try:
            node = make_node(
                SECTION,
                "section",
                seq,
                refs={"document_id": doc_key},
                values={
                    "section_guid": _guid(_attr(sec.child("id"), "root")),
                    "section_link_id": _attr(sec, "ID"),
                    "code": _attr(code_el, "code"),
                    "code_system": _attr(code_el, "codeSystem"),
                    "display_name": _attr(code_el, "displayName"),
                    "title": _text(sec.child("title")),
                    "effective_time": _attr(sec.child("effectiveTime"), "value"),
                },
                source=sec,
            )
        except NodeValidationError as exc:
            log.warning("materializer.validation.skipped", family=SECTION.name, reason=str(exc))
            exc.key = f"{SECTION.name}:section#{seq}"
            out.issues.append(exc)
            return None
        out.nodes.append(node)
        return node.natural_key
