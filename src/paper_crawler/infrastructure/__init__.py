"""
Infrastructure Layer - External Systems Integration

Contains:
- sources: Bibliographic provider clients (Scopus, Semantic Scholar, OpenAlex, CrossRef)
- store: Paper store contract with in-memory and SQL implementations
"""
