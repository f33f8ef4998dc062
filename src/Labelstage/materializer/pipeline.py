"""Top-level document materialization.

``DocumentMaterializer.materialize`` is the one entry point orchestration
code needs: discovery, hierarchy edges and every content family go through a
single coordinator bound to a fresh session, and the outcome comes back as a
``MaterializationResult``. Recoverable problems never raise past here.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog.contextvars import bound_contextvars

from Labelstage.config import Settings, load_settings
from Labelstage.materializer.context import OwnerContext
from Labelstage.materializer.coordinator import BulkFlushCoordinator, ProgressCallback
from Labelstage.materializer.discovery import DiscoveryTraversal
from Labelstage.materializer.errors import MaterializerError, NodeValidationError
from Labelstage.materializer.hierarchy import HierarchyBuilder
from Labelstage.materializer.policy import FlushPolicy
from Labelstage.materializer.result import MaterializationResult
from Labelstage.materializer.store import SqlRowStore
from Labelstage.metrics import record_document_outcome
from Labelstage.source import SourceNode

log = structlog.get_logger()

DocumentInput = SourceNode | tuple[SourceNode, OwnerContext | None]


def _notify(report_progress: ProgressCallback | None, message: str) -> None:
    if report_progress is None:
        return
    try:
        report_progress(message)
    except Exception:
        log.warning("materializer.progress.callback_failed", exc_info=True)


class DocumentMaterializer:
    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession] | None = None,
        *,
        flush_policy: FlushPolicy | str | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or load_settings()
        self.flush_policy = FlushPolicy.parse(
            flush_policy if flush_policy is not None else self.settings.materializer_flush_policy
        )
        if sessionmaker is None:
            from Labelstage.db import get_sessionmaker

            sessionmaker = get_sessionmaker()
        self.sessionmaker = sessionmaker
        self.discovery = DiscoveryTraversal(max_depth=self.settings.materializer_max_nesting_depth)
        self.hierarchy = HierarchyBuilder()

    async def materialize(
        self,
        source_tree: SourceNode,
        owner_context: OwnerContext | None = None,
        *,
        report_progress: ProgressCallback | None = None,
    ) -> MaterializationResult:
        """Materialize one document; always returns a result.

        A document that cannot be keyed, or a failed store round trip, is
        reported in ``fatal_errors`` and everything pending for this document
        is rolled back. Skipped nodes and dropped edges are listed in
        ``discarded`` and leave the status at "partial".
        """
        owner = owner_context or OwnerContext()
        result = MaterializationResult(flush_policy=self.flush_policy.value)

        try:
            discovered = self.discovery.discover(source_tree, owner)
        except NodeValidationError as exc:
            log.error("materializer.document.rejected", reason=str(exc))
            result.fail(exc)
            record_document_outcome(result.status)
            return result

        result.document_guid = discovered.document_guid
        for issue in discovered.issues:
            result.record_issue(issue)
        edges = self.hierarchy.build(discovered.edges)
        for issue in edges.issues:
            result.record_issue(issue)
        _notify(
            report_progress,
            f"discovered {len(discovered.nodes)} nodes and {len(edges.nodes)} edges",
        )

        # The document guid wins over a caller label of the same name
        log_context = {**owner.labels, "document_guid": discovered.document_guid}
        with bound_contextvars(**log_context):
            async with self.sessionmaker() as session:
                coordinator = BulkFlushCoordinator(
                    SqlRowStore(session),
                    policy=self.flush_policy,
                    result=result,
                    report_progress=report_progress,
                )
                try:
                    await coordinator.run([*discovered.nodes, *edges.nodes])
                    await coordinator.commit()
                except MaterializerError as exc:
                    log.error("materializer.document.failed", error=str(exc), exc_info=True)
                    result.fail(exc)
                    try:
                        await coordinator.abort()
                    except SQLAlchemyError as rollback_exc:
                        result.fail(rollback_exc)
                else:
                    if discovered.document_key is not None:
                        doc_id = coordinator.resolution.resolve(discovered.document_key)
                        result.document_id = coordinator.resolution.real_for(doc_id)

            record_document_outcome(result.status)
            log.info(
                "materializer.document.completed",
                status=result.status,
                policy=self.flush_policy.value,
                round_trips=result.round_trips,
                **result.summary_counts(),
            )
        _notify(report_progress, f"document {result.document_guid}: {result.status}")
        return result

    async def materialize_many(
        self,
        documents: Iterable[DocumentInput],
        *,
        concurrency: int | None = None,
        report_progress: ProgressCallback | None = None,
    ) -> list[MaterializationResult]:
        """Materialize independent documents concurrently, results in input order.

        Each document gets its own session, resolution map and change set;
        a failure in one leaves the others untouched.
        """
        limit = concurrency or self.settings.materializer_max_concurrency
        sem = asyncio.Semaphore(limit)

        async def _one(item: DocumentInput) -> MaterializationResult:
            tree, owner = item if isinstance(item, tuple) else (item, None)
            async with sem:
                return await self.materialize(tree, owner, report_progress=report_progress)

        return list(await asyncio.gather(*[_one(doc) for doc in documents]))


async def materialize(
    source_tree: SourceNode,
    owner_context: OwnerContext | None = None,
    *,
    sessionmaker: async_sessionmaker[AsyncSession] | None = None,
    flush_policy: FlushPolicy | str | None = None,
    report_progress: ProgressCallback | None = None,
) -> MaterializationResult:
    materializer = DocumentMaterializer(sessionmaker, flush_policy=flush_policy)
    return await materializer.materialize(
        source_tree, owner_context, report_progress=report_progress
    )
