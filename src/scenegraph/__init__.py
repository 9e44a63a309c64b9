"""scenegraph - arena-backed tree with preorder and pruned mutable traversal."""

from scenegraph.arena import (
    Arena,
    Index,
)
from scenegraph.config import (
    LoggingSettings,
    SceneGraphSettings,
    configure_logging,
    get_settings,
)
from scenegraph.errors import (
    BorrowError,
    DisjointAccessError,
    GraphModifiedError,
    InvalidMoveError,
    InvariantViolation,
    NodeNotFound,
    ParentNodeNotFound,
    RootNodeError,
    SceneGraphError,
)
from scenegraph.graph import SceneGraph
from scenegraph.iter import SceneGraphIter
from scenegraph.iter_mut import NodePair, SceneGraphIterMutPredicate
from scenegraph.nodes import (
    ROOT,
    Branch,
    Children,
    Node,
    NodeIndex,
    Root,
)

__version__ = "0.1.0"

__all__ = [
    "ROOT",
    # Arena
    "Arena",
    # Errors
    "BorrowError",
    # Identifiers
    "Branch",
    "Children",
    "DisjointAccessError",
    "GraphModifiedError",
    "Index",
    "InvalidMoveError",
    "InvariantViolation",
    # Configuration
    "LoggingSettings",
    "Node",
    "NodeIndex",
    "NodeNotFound",
    # Traversal
    "NodePair",
    "ParentNodeNotFound",
    "Root",
    "RootNodeError",
    # Container
    "SceneGraph",
    "SceneGraphError",
    "SceneGraphIter",
    "SceneGraphIterMutPredicate",
    "SceneGraphSettings",
    "__version__",
    "configure_logging",
    "get_settings",
]
