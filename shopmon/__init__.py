"""shopmon: resilient client runtime for the Shopify Storefront GraphQL API."""

__version__ = "0.1.0"
