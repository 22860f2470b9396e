"""
WordPress API migrators and helpers.

This subpackage provides the client for the ``/wp-json/wp/v2`` endpoints used
to upload media, manage categories and tags, create draft posts and delete
them again during rollback.  Every request is retried with backoff, and
taxonomy lookups are cached per run.
"""
