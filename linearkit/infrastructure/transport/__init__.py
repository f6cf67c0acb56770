"""HTTP transport for the GraphQL endpoint."""
