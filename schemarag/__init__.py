"""SchemaRAG: natural-language questions answered with SQL over relational databases."""

__version__ = "0.1.0"
