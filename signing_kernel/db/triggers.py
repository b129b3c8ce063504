"""
Module: signing_kernel.db.triggers
Responsibility: Loading, installing, and verifying PostgreSQL immutability
    triggers (Layer 2 of 2).  Database-level complement to the ORM listeners
    in db/immutability.py.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/,
    selectors/, domain/, or outer layers.

Invariants enforced (PostgreSQL only):
    - audit_events: no UPDATE, no DELETE.
    - signature_records: no UPDATE, no DELETE.
    - contracts: content frozen outside draft/cancelled, write-once hashes,
      terminal statuses final, completed rows frozen, only drafts deletable.
    - verification_tokens: identity fields frozen, attempt counter never
      decreases, consumption permanent, no DELETE.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any violation (surfaces as
      InternalError/IntegrityError through SQLAlchemy).
    - FileNotFoundError if SQL files are missing from the sql/ directory.

Audit relevance:
    The compare-and-set status UPDATE and the token counter UPDATE are Core
    statements that bypass ORM listeners.  These triggers are what still
    guard those paths and anything run directly against the database.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

SQL_DIR = Path(__file__).parent / "sql"

# Installed in this order
TRIGGER_FILES = [
    "01_audit_event.sql",
    "02_signature_record.sql",
    "03_contract.sql",
    "04_verification_token.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_audit_event_immutability_update",
    "trg_audit_event_immutability_delete",
    "trg_signature_record_immutability_update",
    "trg_signature_record_immutability_delete",
    "trg_contract_immutability_update",
    "trg_contract_immutability_delete",
    "trg_token_immutability_update",
    "trg_token_immutability_delete",
]


def _load_sql_file(filename: str) -> str:
    """Load SQL content from a file in the sql/ directory."""
    return (SQL_DIR / filename).read_text(encoding="utf-8")


def _load_all_trigger_sql() -> str:
    """Concatenate all trigger SQL files in numbered order."""
    sql_parts = []
    for filename in TRIGGER_FILES:
        sql_parts.append(f"-- Loading: {filename}")
        sql_parts.append(_load_sql_file(filename))
        sql_parts.append("")
    return "\n".join(sql_parts)


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers.

    Preconditions: Tables exist.  Engine is connected to PostgreSQL.
    Postconditions: All triggers in ALL_TRIGGER_NAMES are installed
        (CREATE OR REPLACE, so repeat calls are harmless).
    """
    with engine.connect() as conn:
        conn.execute(text(_load_all_trigger_sql()))
        conn.commit()


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    WARNING: Only for tests and migrations.  Re-install immediately after.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_sql_file(DROP_FILE)))
        conn.commit()


def get_installed_triggers(engine: Engine) -> list[str]:
    """Names from ALL_TRIGGER_NAMES currently present in pg_trigger."""
    check_sql = text(
        "SELECT tgname FROM pg_trigger WHERE tgname = ANY(:names) ORDER BY tgname"
    )
    with engine.connect() as conn:
        result = conn.execute(check_sql, {"names": ALL_TRIGGER_NAMES})
        return [row[0] for row in result]


def get_missing_triggers(engine: Engine) -> list[str]:
    """Trigger names that should be installed but aren't."""
    return sorted(set(ALL_TRIGGER_NAMES) - set(get_installed_triggers(engine)))


def triggers_installed(engine: Engine) -> bool:
    """True iff every trigger in ALL_TRIGGER_NAMES is installed."""
    return not get_missing_triggers(engine)
