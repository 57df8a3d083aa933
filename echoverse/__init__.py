"""EchoVerse: alternative-reality generation API and LLM proxy."""

__version__ = "1.0.0"
