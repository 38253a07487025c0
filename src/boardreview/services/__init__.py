"""Service abstractions for the review queue application."""

from .decisions import DECISION_STATES, DecisionApplicationEngine, parse_decision_key, state_for_decision
from .permissions import PermissionGate, ReviewerContext, load_reviewer
from .picklist import TopicPicklist, TopicPicklistBuilder
from .planner import QueryPlan, QueueQueryPlanner, unique_ids
from .queue_store import QueueSessionStore
from .renderer import ArticleDecisionRenderer, RenderContext, TypeAncestry
from .review_queue import ReviewQueueService
from .states import StateCatalog, ensure_workflow_states
from .trace import NullObserver, RecordingObserver, StructlogObserver, TraceObserver

__all__ = [
    "ArticleDecisionRenderer",
    "DECISION_STATES",
    "DecisionApplicationEngine",
    "NullObserver",
    "PermissionGate",
    "QueryPlan",
    "QueueQueryPlanner",
    "QueueSessionStore",
    "RecordingObserver",
    "RenderContext",
    "ReviewQueueService",
    "ReviewerContext",
    "StateCatalog",
    "StructlogObserver",
    "TopicPicklist",
    "TopicPicklistBuilder",
    "TraceObserver",
    "TypeAncestry",
    "ensure_workflow_states",
    "load_reviewer",
    "parse_decision_key",
    "state_for_decision",
    "unique_ids",
]
