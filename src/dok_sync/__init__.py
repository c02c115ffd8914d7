"""dok-sync: converge knowledge stores toward the documents of their sources."""

__version__ = "0.1.0"
