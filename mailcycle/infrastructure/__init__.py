"""SQLite connection helpers, schema and .env loading."""
