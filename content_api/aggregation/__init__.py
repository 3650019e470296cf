"""
Content aggregation & social-graph engine.

Read-side layer over the entity store: it never owns entities, keeps no
state between calls and caches nothing. `ContentEngine` wires the pieces
together for one store.
"""
from typing import Optional

from content_api.aggregation.comments import CommentTreeBuilder, build_comment_tree
from content_api.aggregation.counts import CountAggregator
from content_api.aggregation.graph import GraphAccessor
from content_api.aggregation.listings import ListComposer
from content_api.aggregation.pagination import Pagination, total_pages
from content_api.aggregation.tags import TagResolver
from content_api.aggregation.views import ViewAssembler
from content_api.store import EntityStore

__all__ = [
    "CommentTreeBuilder",
    "ContentEngine",
    "CountAggregator",
    "GraphAccessor",
    "ListComposer",
    "Pagination",
    "TagResolver",
    "ViewAssembler",
    "build_comment_tree",
    "total_pages",
]


class ContentEngine:
    def __init__(self, store: EntityStore, concurrency: Optional[int] = None) -> None:
        self.store = store
        self.graph = GraphAccessor(store)
        self.counts = CountAggregator(store)
        self.tags = TagResolver(store)
        self.views = ViewAssembler(store, self.graph, self.counts, self.tags, concurrency)
        self.comments = CommentTreeBuilder(self.views)
        self.listings = ListComposer(store, self.views, self.graph, self.tags, self.comments)
