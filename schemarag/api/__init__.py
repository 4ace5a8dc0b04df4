"""HTTP API for SchemaRAG."""
