"""
Table definitions for the CMS.

Written for SQLite (local development and the test suite). Production
databases are expected to be migrated out of band with equivalent tables.

    with database.connection() as conn:
        create_schema(conn)
"""

import logging


logger = logging.getLogger(__name__)


TABLES = {
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name VARCHAR(255) NOT NULL,
            email VARCHAR(255) NOT NULL UNIQUE,
            password_hash VARCHAR(255) NOT NULL,
            role VARCHAR(50) NOT NULL DEFAULT 'user',
            email_verified INTEGER NOT NULL DEFAULT 0,
            email_verification_token VARCHAR(255),
            email_verification_sent_at DATETIME,
            created_at DATETIME,
            updated_at DATETIME
        )
    """,
    "categories": """
        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name VARCHAR(255) NOT NULL,
            slug VARCHAR(255) NOT NULL UNIQUE,
            description TEXT,
            parent_id INTEGER REFERENCES categories(id),
            created_at DATETIME,
            updated_at DATETIME
        )
    """,
    "blogs": """
        CREATE TABLE IF NOT EXISTS blogs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            category_id INTEGER REFERENCES categories(id),
            title VARCHAR(255) NOT NULL,
            slug VARCHAR(255) NOT NULL UNIQUE,
            content TEXT NOT NULL,
            excerpt TEXT,
            status VARCHAR(20) NOT NULL DEFAULT 'draft',
            published_at DATETIME,
            created_at DATETIME,
            updated_at DATETIME
        )
    """,
    "tags": """
        CREATE TABLE IF NOT EXISTS tags (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name VARCHAR(255) NOT NULL UNIQUE,
            slug VARCHAR(255) NOT NULL UNIQUE
        )
    """,
    "blog_tags": """
        CREATE TABLE IF NOT EXISTS blog_tags (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            blog_id INTEGER NOT NULL REFERENCES blogs(id),
            tag_id INTEGER NOT NULL REFERENCES tags(id),
            UNIQUE (blog_id, tag_id)
        )
    """,
    "seo_meta": """
        CREATE TABLE IF NOT EXISTS seo_meta (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_type VARCHAR(50) NOT NULL,
            entity_id INTEGER NOT NULL,
            meta_title VARCHAR(255),
            meta_description TEXT,
            meta_keywords TEXT,
            og_title VARCHAR(255),
            og_description TEXT,
            og_image VARCHAR(255),
            twitter_title VARCHAR(255),
            twitter_description TEXT,
            twitter_image VARCHAR(255),
            canonical_url VARCHAR(255)
        )
    """,
}


def create_schema(conn) -> None:
    """Create every CMS table that does not exist yet."""
    with conn.transaction():
        for name, ddl in TABLES.items():
            conn.execute(ddl)
            logger.debug(f"Ensured table {name}")
