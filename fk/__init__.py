"""fork-keeper: keep a downstream fork in sync with upstream and ship its releases."""

__version__ = "0.3.0"
