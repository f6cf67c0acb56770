"""Comments capability. Depends on the issues module."""

from typing import Any

from linearkit.core import queries
from linearkit.core.modules.base_module import BaseModule, ModuleContext
from linearkit.domain.models.graphql import GraphQLRequest


class CommentsModule(BaseModule):

    def __init__(self, context: ModuleContext):
        super().__init__("comments", context)

    def setup_operations(self) -> None:
        self.register_operation("add_comment", "Post a comment on an issue", self.add_comment, ["issue_id", "body"])
        self.register_operation("list_comments", "List comments of an issue", self.list_comments, ["issue_id"])

    async def add_comment(self, issue_id: str, body: str) -> Any:
        return await self.executor.mutate(
            GraphQLRequest(query=queries.CREATE_COMMENT, variables={"issueId": issue_id, "body": body})
        )

    async def list_comments(self, issue_id: str) -> Any:
        return await self.executor.query(
            GraphQLRequest(query=queries.LIST_COMMENTS, variables={"issueId": issue_id}), use_cache=True
        )
