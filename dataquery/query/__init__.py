"""Queries and the query manager.

Public exports:
- Query, GraphQLQuery
- QueryManager
- QueryStack, StackEntry, EntryState
- BuildStrategy, BuildQuery, BuildGraphQLQuery, register_build_strategy
"""
from .build import BuildGraphQLQuery, BuildQuery, BuildStrategy, register_build_strategy
from .graphql import GraphQLQuery
from .manager import QueryManager
from .query import Query
from .stack import EntryState, QueryStack, StackEntry

__all__ = [
    "Query",
    "GraphQLQuery",
    "QueryManager",
    "QueryStack",
    "StackEntry",
    "EntryState",
    "BuildStrategy",
    "BuildQuery",
    "BuildGraphQLQuery",
    "register_build_strategy",
]
