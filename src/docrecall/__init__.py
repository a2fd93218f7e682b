"""DocRecall - hybrid keyword and semantic search over long-form text."""

__version__ = "0.1.0"
