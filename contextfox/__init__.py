"""
ContextFox - Incremental Story Metadata Extraction
Extracts story cards, summaries, plot essentials and core selves from long-form
story text by orchestrating LLM completion calls across resumable parts.
"""

__version__ = "0.4.0"
