"""
Round loop node factories.
"""

from agent.nodes.answer_node import build_answer_node
from agent.nodes.data_node import build_data_node
from agent.nodes.decide_node import INTENT_NODE, build_decide_node, route_after_decide
from agent.nodes.intent_node import build_intent_node
from agent.nodes.validate_node import build_validate_node

__all__ = [
    "INTENT_NODE",
    "build_answer_node",
    "build_data_node",
    "build_decide_node",
    "build_intent_node",
    "build_validate_node",
    "route_after_decide",
]
