"""Persistent state: key layout, selectors, the state service and resource pointers."""

from fragments.state.matchers import LabelMatcher, Matcher, matches_all
from fragments.state.resource import ResourcePointer
from fragments.state.service import StateService

__all__ = [
    "LabelMatcher",
    "Matcher",
    "matches_all",
    "ResourcePointer",
    "StateService",
]
