from wikiwalk.controller import RunController
from wikiwalk.errors import FetchError, NoLinksAvailable, NoSeedError, WikiWalkError
from wikiwalk.graph import Edge, EdgeKind, GraphStore, Node
from wikiwalk.titles import canon, pretty
from wikiwalk.walk import StepResult, WalkEngine, WalkState
from wikiwalk.wikipedia import Summary, WikipediaClient

__all__ = [
    "RunController",
    "WalkEngine",
    "WalkState",
    "StepResult",
    "GraphStore",
    "Node",
    "Edge",
    "EdgeKind",
    "WikipediaClient",
    "Summary",
    "WikiWalkError",
    "FetchError",
    "NoSeedError",
    "NoLinksAvailable",
    "canon",
    "pretty",
]
