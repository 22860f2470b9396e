"""
Top-level package for the Tistory → WordPress migration engine.

This package bundles all components required to crawl a Tistory blog,
clean post markup, upload media to the WordPress media library, create
draft posts and keep a durable ledger of every attempt so runs can be
resumed, retried or audited.  Modules are split into subpackages:

* :mod:`blog_migrator.extractors` – Tistory crawling and metadata parsing
* :mod:`blog_migrator.parsers` – HTML cleaning and bookmark card rendering
* :mod:`blog_migrator.migrators` – WordPress REST API interactions
* :mod:`blog_migrator.services` – the per-post saga, media, links, exports
  and resume planning
* :mod:`blog_migrator.workers` – the bounded, rate limited worker pool
* :mod:`blog_migrator.db` – the DuckDB ledger
* :mod:`blog_migrator.utils` – errors, reports, retry, rate limiting, logging

Each layer receives its collaborators explicitly; orchestration is handled
in :mod:`blog_migrator.migration_tool`.
"""

__version__ = "0.1.0"
