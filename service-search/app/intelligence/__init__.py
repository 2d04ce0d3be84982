"""Query intelligence: routing queries to a retrieval mode."""
