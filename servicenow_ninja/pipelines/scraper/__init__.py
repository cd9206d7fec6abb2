"""Crawl stages that talk to the documentation site over HTTP."""
