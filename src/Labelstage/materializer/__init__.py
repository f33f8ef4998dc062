"""Staged bulk materialization of label documents."""  # noqa: N999

from .context import OrganizationRef, OwnerContext
from .coordinator import BulkFlushCoordinator, PendingChangeSet
from .discovery import DiscoveryResult, DiscoveryTraversal
from .errors import (
    DuplicateFound,
    MaterializerError,
    NodeValidationError,
    PersistenceError,
    ReferentialIntegrityError,
)
from .hierarchy import EdgeCandidate, HierarchyBuilder
from .keys import NaturalKey, content_hash
from .nodes import CandidateState, ContentNode, RowCandidate
from .pipeline import DocumentMaterializer, materialize
from .policy import FlushPolicy
from .provisional import IdentifierResolutionMap, ProvisionalId, ProvisionalIdAllocator
from .result import MaterializationResult
from .store import RowStore, SqlRowStore

__all__ = [
    "BulkFlushCoordinator",
    "CandidateState",
    "ContentNode",
    "DiscoveryResult",
    "DiscoveryTraversal",
    "DocumentMaterializer",
    "DuplicateFound",
    "EdgeCandidate",
    "FlushPolicy",
    "HierarchyBuilder",
    "IdentifierResolutionMap",
    "MaterializationResult",
    "MaterializerError",
    "NaturalKey",
    "NodeValidationError",
    "OrganizationRef",
    "OwnerContext",
    "PendingChangeSet",
    "PersistenceError",
    "ProvisionalId",
    "ProvisionalIdAllocator",
    "ReferentialIntegrityError",
    "RowCandidate",
    "RowStore",
    "SqlRowStore",
    "content_hash",
    "materialize",
]
