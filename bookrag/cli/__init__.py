"""Command-line tools for bookrag.

- ``python -m bookrag.cli`` (or ``bookrag``) ingests PDFs into per-book
  knowledge bases, answers questions, and reports or deletes stored
  documents.
"""
