"""
DuckDB schema of the migration ledger.

Statements are idempotent and applied every time a connection is opened.
Foreign keys are not declared because DuckDB rewrites an UPDATE as
delete+insert, which a referenced parent row refuses; the ledger checks the
creation order itself.
"""

SCHEMA_STATEMENTS = [
    "CREATE SEQUENCE IF NOT EXISTS seq_migration_jobs START 1",
    "CREATE SEQUENCE IF NOT EXISTS seq_migration_job_items START 1",
    "CREATE SEQUENCE IF NOT EXISTS seq_migration_image_assets START 1",
    "CREATE SEQUENCE IF NOT EXISTS seq_post_map START 1",
    "CREATE SEQUENCE IF NOT EXISTS seq_internal_links START 1",
    """
    CREATE TABLE IF NOT EXISTS migration_jobs (
        id BIGINT PRIMARY KEY DEFAULT nextval('seq_migration_jobs'),
        blog_url VARCHAR NOT NULL,
        job_type VARCHAR NOT NULL,
        status VARCHAR NOT NULL,
        created_at VARCHAR NOT NULL,
        completed_at VARCHAR,
        error_message VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS migration_job_items (
        id BIGINT PRIMARY KEY DEFAULT nextval('seq_migration_job_items'),
        job_id BIGINT NOT NULL,
        source_url VARCHAR NOT NULL,
        destination_content_id BIGINT,
        status VARCHAR NOT NULL,
        error_message VARCHAR,
        created_at VARCHAR NOT NULL,
        updated_at VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS migration_image_assets (
        id BIGINT PRIMARY KEY DEFAULT nextval('seq_migration_image_assets'),
        job_item_id BIGINT NOT NULL,
        source_url VARCHAR NOT NULL,
        destination_media_id BIGINT,
        destination_media_url VARCHAR,
        status VARCHAR NOT NULL,
        error_message VARCHAR,
        created_at VARCHAR NOT NULL,
        updated_at VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS post_map (
        id BIGINT PRIMARY KEY DEFAULT nextval('seq_post_map'),
        source_url VARCHAR NOT NULL UNIQUE,
        destination_content_id BIGINT NOT NULL,
        created_at VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS internal_links (
        id BIGINT PRIMARY KEY DEFAULT nextval('seq_internal_links'),
        job_item_id BIGINT NOT NULL,
        source_url VARCHAR NOT NULL,
        target_url VARCHAR NOT NULL,
        link_text VARCHAR,
        context VARCHAR,
        created_at VARCHAR NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_job_items_job ON migration_job_items (job_id)",
    "CREATE INDEX IF NOT EXISTS idx_job_items_url ON migration_job_items (source_url)",
    "CREATE INDEX IF NOT EXISTS idx_image_assets_item ON migration_image_assets (job_item_id)",
    "CREATE INDEX IF NOT EXISTS idx_internal_links_item ON internal_links (job_item_id)",
]

TABLE_NAMES = (
    "internal_links",
    "migration_image_assets",
    "migration_job_items",
    "migration_jobs",
    "post_map",
)
