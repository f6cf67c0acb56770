"""Issues capability: single-issue reads and writes."""

from typing import Any, Dict

from linearkit.core import queries
from linearkit.core.modules.base_module import BaseModule, ModuleContext
from linearkit.domain.models.graphql import GraphQLRequest


class IssuesModule(BaseModule):

    def __init__(self, context: ModuleContext):
        super().__init__("issues", context)

    def setup_operations(self) -> None:
        self.register_operation("get_issue", "Fetch one issue (cached)", self.get_issue, ["issue_id"])
        self.register_operation("create_issue", "Create an issue", self.create_issue, ["input"])
        self.register_operation("update_issue", "Update fields of an issue", self.update_issue, ["issue_id", "update"])
        self.register_operation("delete_issue", "Delete an issue", self.delete_issue, ["issue_id"])

    async def get_issue(self, issue_id: str) -> Any:
        data = await self.executor.query(
            GraphQLRequest(query=queries.GET_ISSUE, variables={"id": issue_id}), use_cache=True
        )
        self.session.set_context("last_issue_id", issue_id)
        return data

    async def create_issue(self, input: Dict[str, Any]) -> Any:
        return await self.executor.mutate(GraphQLRequest(query=queries.CREATE_ISSUE, variables={"input": input}))

    async def update_issue(self, issue_id: str, update: Dict[str, Any]) -> Any:
        return await self.executor.mutate(
            GraphQLRequest(query=queries.UPDATE_ISSUE, variables={"id": issue_id, "update": update})
        )

    async def delete_issue(self, issue_id: str) -> Any:
        return await self.executor.mutate(GraphQLRequest(query=queries.DELETE_ISSUE, variables={"id": issue_id}))
