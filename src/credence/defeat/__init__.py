"""Defeasible reasoning over claims.

Defeaters undercut claims; meta-defeaters undercut defeaters. This package
decides which defeaters are in force, applies them to confidence values,
and pushes defeat through the evidence graph to dependent claims.
"""

from credence.defeat.graph import EvidenceGraphStore, InMemoryEvidenceGraph
from credence.defeat.grounded import (
    DefeaterGraph,
    GroundedExtension,
    build_defeater_graph,
    compute_grounded_extension,
    detect_defeater_cycles,
    grounded_status,
    is_extension_complete,
    resolve_defeater_cycles,
)
from credence.defeat.impact import (
    DEFEAT_FORMULA_TAGS,
    DefeaterApplication,
    DefeaterApplicationSummary,
    apply_defeater_to_confidence,
    apply_defeaters_to_confidence,
    compute_defeated_strength,
    compute_multiple_defeated_strength,
    find_defeaters_in_confidence,
    remove_defeater_from_confidence,
)
from credence.defeat.meta import (
    add_meta_defeater,
    get_effectively_active_defeaters,
    is_defeater_active,
    remove_meta_defeater,
)
from credence.defeat.propagation import (
    AffectedClaim,
    DependencyEdge,
    DependencyGraph,
    DependencyNode,
    apply_transitive_defeat,
    get_dependency_graph,
    invalidate_dependents,
    propagate_defeat,
)
from credence.defeat.types import (
    Claim,
    ClaimStatus,
    DefeaterSeverity,
    DefeaterStatus,
    DefeaterType,
    EdgeType,
    EvidenceEdge,
    ExtendedDefeater,
    create_defeater,
    parse_claim_status,
)

__all__ = [
    # Types
    "Claim",
    "ClaimStatus",
    "DefeaterSeverity",
    "DefeaterStatus",
    "DefeaterType",
    "EdgeType",
    "EvidenceEdge",
    "ExtendedDefeater",
    "create_defeater",
    "parse_claim_status",
    # Meta-defeat
    "add_meta_defeater",
    "get_effectively_active_defeaters",
    "is_defeater_active",
    "remove_meta_defeater",
    # Grounded semantics
    "DefeaterGraph",
    "GroundedExtension",
    "build_defeater_graph",
    "compute_grounded_extension",
    "detect_defeater_cycles",
    "grounded_status",
    "is_extension_complete",
    "resolve_defeater_cycles",
    # Confidence impact
    "DEFEAT_FORMULA_TAGS",
    "DefeaterApplication",
    "DefeaterApplicationSummary",
    "apply_defeater_to_confidence",
    "apply_defeaters_to_confidence",
    "compute_defeated_strength",
    "compute_multiple_defeated_strength",
    "find_defeaters_in_confidence",
    "remove_defeater_from_confidence",
    # Graph propagation
    "AffectedClaim",
    "DependencyEdge",
    "DependencyGraph",
    "DependencyNode",
    "EvidenceGraphStore",
    "InMemoryEvidenceGraph",
    "apply_transitive_defeat",
    "get_dependency_graph",
    "invalidate_dependents",
    "propagate_defeat",
]
