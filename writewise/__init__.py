"""WriteWise coach core: phased writing lessons driven by an LLM coach."""

__version__ = "0.1.0"
