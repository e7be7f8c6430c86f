"""Fetch JSON from paginated REST APIs, render SQL module templates and configure logging."""

__version__ = "0.1.0"

__all__ = ["errors", "fetcher", "httpclient", "logsetup", "pagination", "templating"]