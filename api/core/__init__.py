"""
Shared, cross-cutting code for the API.

`core/` holds the small building blocks every feature relies on: settings,
logging, the Postgres pool, the Redis cache client and the blob storage.
Feature-specific SQL and business logic live in the feature packages
(e.g. `listings/`).
"""
