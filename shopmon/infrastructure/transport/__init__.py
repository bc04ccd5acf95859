"""HTTP transport for the Storefront GraphQL endpoint."""
