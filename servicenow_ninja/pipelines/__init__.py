"""Three-stage crawl pipeline for the documentation search index.

Stage 1: Sitemap discovery - reads robots.txt sources for ``Sitemap:`` lines
Stage 2: Content extraction - walks sitemaps and stores page text
Stage 3: Embedding generation - chunks changed pages into the vector index
"""
