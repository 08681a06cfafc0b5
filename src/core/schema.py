"""SQLite schema management (code-first approach)."""

import logging

import aiosqlite

from src.core.db_client import get_db_path


logger = logging.getLogger(__name__)


# Central list of all collections in the schema, in creation order
COLLECTIONS = [
    "users",
    "donations",
    "carts",
    "cart_items",
    "notifications",
]


TABLE_SCHEMAS: dict[str, str] = {
    "users": """CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE COLLATE NOCASE,
        phone TEXT,
        address TEXT,
        push_token TEXT,
        latitude REAL,
        longitude REAL
    )""",
    "donations": """CREATE TABLE IF NOT EXISTS donations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        donor_name TEXT NOT NULL,
        email TEXT NOT NULL,
        phone_no TEXT NOT NULL,
        food_name TEXT NOT NULL,
        food_type TEXT NOT NULL,
        food_image TEXT,
        quantity INTEGER NOT NULL CHECK (quantity >= 0),
        location_name TEXT NOT NULL,
        latitude REAL NOT NULL,
        longitude REAL NOT NULL,
        created_date TEXT NOT NULL,
        expiry_date TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'available'
            CHECK (status IN ('available', 'claimed', 'completed')),
        claimed_at TEXT,
        claimed_by TEXT,
        version INTEGER NOT NULL DEFAULT 0
    )""",
    "carts": """CREATE TABLE IF NOT EXISTS carts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        user_id TEXT NOT NULL UNIQUE
    )""",
    "cart_items": """CREATE TABLE IF NOT EXISTS cart_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        user_id TEXT NOT NULL,
        donation_id TEXT NOT NULL,
        food_name TEXT NOT NULL,
        food_type TEXT NOT NULL,
        quantity INTEGER NOT NULL,
        donor_name TEXT NOT NULL,
        location_name TEXT NOT NULL,
        latitude REAL NOT NULL,
        longitude REAL NOT NULL,
        added_at TEXT NOT NULL,
        UNIQUE(user_id, donation_id)
    )""",
    "notifications": """CREATE TABLE IF NOT EXISTS notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        email TEXT NOT NULL,
        push_token TEXT,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        type TEXT NOT NULL,
        data TEXT NOT NULL DEFAULT '{}',
        read INTEGER NOT NULL DEFAULT 0,
        timestamp TEXT NOT NULL
    )""",
}


INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_donations_email ON donations (email)",
    "CREATE INDEX IF NOT EXISTS idx_donations_status_claimed_at ON donations (status, claimed_at)",
    "CREATE INDEX IF NOT EXISTS idx_cart_items_user_id ON cart_items (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_email ON notifications (email)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes (idempotent).

    Args:
        db_path: Optional database path. Defaults to settings.sqlite_db_path.
    """
    path = get_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    logger.info("Starting schema initialization", extra={"db_path": str(path)})

    async with aiosqlite.connect(str(path)) as conn:
        await conn.execute("PRAGMA journal_mode = WAL")
        for collection_name in COLLECTIONS:
            await conn.execute(TABLE_SCHEMAS[collection_name])
            logger.debug("Ensured table exists: %s", collection_name)
        for index_sql in INDEXES:
            await conn.execute(index_sql)
        await conn.commit()

    logger.info("Schema initialization complete", extra={"tables": len(COLLECTIONS)})
