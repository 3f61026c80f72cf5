"""
Database schema initialization.

Each logical dictionary gets its own table with the same shape: a text key,
a JSON-encoded value and the unix time of the last write.
"""

import aiosqlite
from bouncer.util.logger import get_logger

logger = get_logger("database_schema")

VERIFICATION_TABLE = "verification"
WHITELIST_TABLE = "whitelist"

KV_TABLES = (VERIFICATION_TABLE, WHITELIST_TABLE)

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the key/value tables and records the schema version."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables if they are missing.

        Args:
            db: Open database connection
        """
        for table in KV_TABLES:
            await db.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
                )
            """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)
