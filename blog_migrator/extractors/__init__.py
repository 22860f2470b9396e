"""
Extractors for the Tistory source blog.

This subpackage discovers post URLs from the paginated list pages and reads
single posts into the metadata the migration needs (title, dates,
categories, tags and featured image).
"""
