"""Semantic ingestion & taxonomy engine.

This package turns long-form video transcripts into segment and video
embeddings, classifies each video into a root -> branch -> leaf taxonomy and
maintains the tree of SYSTEM collections built from those labels.
"""
