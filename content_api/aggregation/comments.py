"""
One-level comment threads.

A post's comments arrive as a flat list, oldest first. The tree is built over
an arena (the ordered list of views) plus two indexes: comment id → arena
position, and parent id → positions of its direct replies. Roots get the
replies indexed under their own id; a reply's `replies` is always empty.

Replies to replies are accepted on write but never surfaced here: their
parent is not a root, so nothing attaches them. Deep threads flatten away.
"""
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Sequence

from content_api.models import Comment
from content_api.schemas import CommentView

if TYPE_CHECKING:
    from content_api.aggregation.views import ViewAssembler

logger = logging.getLogger(__name__)


def build_comment_tree(comments: Sequence[CommentView]) -> list[CommentView]:
    # sorted() is stable, so comments created in the same instant keep store order
    ordered = sorted(comments, key=lambda c: c.created_at)
    arena = [c.model_copy(update={"replies": []}) for c in ordered]
    position = {c.id: i for i, c in enumerate(arena)}
    children: dict[str, list[int]] = defaultdict(list)
    roots: list[int] = []

    for i, comment in enumerate(arena):
        if comment.parent_id is None:
            roots.append(i)
        else:
            children[comment.parent_id].append(i)

    hidden = sum(
        len(kids)
        for parent_id, kids in children.items()
        if parent_id not in position or arena[position[parent_id]].parent_id is not None
    )
    if hidden:
        logger.debug("Left %d reply(ies) to non-root comments out of the thread", hidden)

    return [
        arena[i].model_copy(update={"replies": [arena[j] for j in children.get(arena[i].id, [])]})
        for i in roots
    ]


class CommentTreeBuilder:
    def __init__(self, assembler: "ViewAssembler") -> None:
        self._assembler = assembler

    async def build(self, comments: Sequence[Comment]) -> list[CommentView]:
        views = await self._assembler.assemble_comment_views(comments)
        return build_comment_tree(views)
