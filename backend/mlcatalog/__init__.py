"""ML metadata catalog: entity queries, authorization-scoped pagination, tags, attributes and deep copy."""
__version__ = "0.1.0"
