"""
Schema upgrade for an existing tasks SQLite DB.
Run:  python migrate.py [path/to/tasks.db]

What it does (idempotent):
- Create the tasks table when missing
- Add description, created_at, updated_at to tasks when missing
- Replace a non-unique idx_position with a unique one

The unique index is only built when no two rows share a position; otherwise
the duplicates are listed and the script exits non-zero, leaving the index
as it was.
"""
import sqlite3
import sys
from pathlib import Path

DB_PATH = Path("instance") / "tasks.db"


def table_exists(cur, name):
    cur.execute("SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,))
    return cur.fetchone() is not None


def column_exists(cur, table, column):
    cur.execute(f"PRAGMA table_info({table})")
    return any(row[1] == column for row in cur.fetchall())


def add_column(cur, table, column, col_type, default_sql=None):
    if column_exists(cur, table, column):
        print(f"[skip] {table}.{column} exists")
        return
    cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}")
    if default_sql is not None:
        cur.execute(f"UPDATE {table} SET {column} = {default_sql} WHERE {column} IS NULL")
    print(f"[add] {table}.{column}")


def index_is_unique(cur, table, index):
    """Return True/False for an existing index, None when it is absent."""
    cur.execute(f"PRAGMA index_list({table})")
    for row in cur.fetchall():
        if row[1] == index:
            return bool(row[2])
    return None


def duplicate_positions(cur):
    cur.execute(
        "SELECT position, COUNT(*) FROM tasks GROUP BY position HAVING COUNT(*) > 1 ORDER BY position"
    )
    return cur.fetchall()


def ensure_tasks(cur):
    if not table_exists(cur, "tasks"):
        cur.execute(
            """
            CREATE TABLE tasks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT,
                position INTEGER NOT NULL,
                created_at DATETIME NOT NULL,
                updated_at DATETIME NOT NULL
            )
            """
        )
        print("[add] tasks table created")
        return
    add_column(cur, "tasks", "description", "TEXT")
    add_column(cur, "tasks", "created_at", "DATETIME", default_sql="CURRENT_TIMESTAMP")
    add_column(cur, "tasks", "updated_at", "DATETIME", default_sql="created_at")


def ensure_position_index(cur):
    unique = index_is_unique(cur, "tasks", "idx_position")
    if unique:
        print("[skip] idx_position is unique")
        return True
    dupes = duplicate_positions(cur)
    if dupes:
        for position, count in dupes:
            print(f"[error] position {position} is held by {count} tasks")
        print("[error] resolve duplicate positions before building the unique index")
        return False
    if unique is False:
        cur.execute("DROP INDEX idx_position")
        print("[drop] non-unique idx_position")
    cur.execute("CREATE UNIQUE INDEX idx_position ON tasks(position)")
    print("[add] unique idx_position")
    return True


def migrate(db_path):
    conn = sqlite3.connect(db_path)
    cur = conn.cursor()
    try:
        ensure_tasks(cur)
        if not ensure_position_index(cur):
            conn.rollback()
            return False
        conn.commit()
        print("Migration complete.")
        return True
    finally:
        conn.close()


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    db_path = Path(args[0]) if args else DB_PATH
    if not db_path.exists():
        print(f"Database not found: {db_path}")
        return 1
    return 0 if migrate(db_path) else 1


if __name__ == "__main__":
    raise SystemExit(main())
