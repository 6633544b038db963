"""NovelSync: crawl novel chapters through an LLM and commit them to GitHub."""

__version__ = "0.1"
