"""GraphQL documents used by the bundled capability modules.

The toolkit treats them as opaque payloads.
"""

GET_ISSUE = """
query GetIssue($id: String!) {
  issue(id: $id) {
    id
    identifier
    title
    state { id name }
    priority
    assignee { id name }
  }
}
"""

CREATE_ISSUE = """
mutation CreateIssue($input: IssueCreateInput!) {
  issueCreate(input: $input) {
    issue { id identifier }
    success
  }
}
"""

UPDATE_ISSUE = """
mutation UpdateIssue($id: String!, $update: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $update) {
    issue { id }
    success
  }
}
"""

DELETE_ISSUE = """
mutation DeleteIssue($id: String!) {
  issueDelete(id: $id) {
    success
  }
}
"""

TRANSITION_ISSUE = """
mutation TransitionIssue($id: String!, $stateId: String!) {
  issueUpdate(id: $id, input: { stateId: $stateId }) {
    issue { id identifier }
    success
  }
}
"""

ASSIGN_ISSUE = """
mutation AssignIssue($id: String!, $assigneeId: String!) {
  issueUpdate(id: $id, input: { assigneeId: $assigneeId }) {
    issue { id assignee { name } }
    success
  }
}
"""

ADD_LABELS = """
mutation AddLabels($id: String!, $labelIds: [String!]!) {
  issueAddLabels(id: $id, labelIds: $labelIds) {
    issue { id }
    success
  }
}
"""

CREATE_COMMENT = """
mutation CreateComment($issueId: String!, $body: String!) {
  commentCreate(input: { issueId: $issueId, body: $body }) {
    comment { id body }
    success
  }
}
"""

LIST_COMMENTS = """
query ListComments($issueId: String!) {
  issue(id: $issueId) {
    comments { nodes { id body createdAt } }
  }
}
"""
