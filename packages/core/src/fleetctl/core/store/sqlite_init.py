"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id               TEXT PRIMARY KEY,
    title                 TEXT NOT NULL,
    description           TEXT NOT NULL DEFAULT '',
    requested_by          TEXT NOT NULL,
    required_capabilities TEXT NOT NULL DEFAULT '[]',
    timeout_seconds       INTEGER,
    assigned_to           TEXT,
    assigned_to_name      TEXT,
    routing_reason        TEXT,
    status                TEXT NOT NULL DEFAULT 'pending',
    result                TEXT,
    error                 TEXT,
    created_at            TEXT NOT NULL,
    assigned_at           TEXT,
    completed_at          TEXT
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assigned_to ON tasks(assigned_to);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at);",
]

# agents 表 DDL（agent roster）
_AGENTS_DDL = """
CREATE TABLE IF NOT EXISTS agents (
    agent_id      TEXT PRIMARY KEY,
    name          TEXT NOT NULL UNIQUE,
    host          TEXT NOT NULL,
    user          TEXT NOT NULL DEFAULT 'openclaw',
    role          TEXT NOT NULL DEFAULT 'worker',
    status        TEXT NOT NULL DEFAULT 'unknown',
    capabilities  TEXT NOT NULL DEFAULT '[]',
    description   TEXT NOT NULL DEFAULT '',
    session_key   TEXT,
    tags          TEXT NOT NULL DEFAULT '[]',
    ssh_key_path  TEXT,
    workspace_dir TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);
"""

# audit_log 表 DDL（append-only）
_AUDIT_DDL = """
CREATE TABLE IF NOT EXISTS audit_log (
    entry_id     TEXT PRIMARY KEY,
    ts           TEXT NOT NULL,
    action       TEXT NOT NULL,
    actor        TEXT NOT NULL DEFAULT 'cli',
    subject_id   TEXT,
    subject_name TEXT,
    detail       TEXT NOT NULL DEFAULT '{}',
    success      INTEGER NOT NULL DEFAULT 1,
    error        TEXT
);
"""

_AUDIT_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_audit_ts ON audit_log(ts DESC);",
    "CREATE INDEX IF NOT EXISTS idx_audit_action ON audit_log(action);",
    "CREATE INDEX IF NOT EXISTS idx_audit_subject ON audit_log(subject_id);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_AGENTS_DDL)
    await conn.execute(_AUDIT_DDL)

    # 创建索引
    for idx_sql in _TASKS_INDEXES + _AUDIT_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
