"""
Adapters - how steps reach a backend.
"""

from .base import ApiAdapter, FunctionAdapter
from .http import HttpTransport, classify_status
from .graphql import GraphQLAdapter
from .rest import RestAdapter, parse_route
from .replay import ReplayAdapter, ReplayCall

__all__ = [
    "ApiAdapter",
    "FunctionAdapter",
    "HttpTransport",
    "classify_status",
    "GraphQLAdapter",
    "RestAdapter",
    "parse_route",
    "ReplayAdapter",
    "ReplayCall",
]
