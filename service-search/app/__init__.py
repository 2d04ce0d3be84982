"""Search service package.

Layout:
- ``api``: HTTP endpoint for hybrid retrieval.
- ``hybrid``: request types and semantic + lexical search orchestration.
- ``ranking``: score normalization, fusion and context budgeting.
- ``intelligence``: query routing between retrieval modes.
"""
