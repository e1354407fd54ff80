"""Store access: connection, schema, models and queries."""
