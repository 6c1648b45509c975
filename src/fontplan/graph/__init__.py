from .engine import BuildGraph, NodeRef, NodeState, Rule, RuleType, Target
from .journal import Journal

__all__ = ["BuildGraph", "Journal", "NodeRef", "NodeState", "Rule", "RuleType", "Target"]
