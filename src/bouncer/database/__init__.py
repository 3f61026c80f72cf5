"""
SQLite-backed durable dictionaries.

Public API:
    - ConnectionManager: the single long-lived aiosqlite connection
    - SchemaManager: creates one key/value table per logical dictionary
    - KeyValueStore: get/put/delete over one of those tables
"""
