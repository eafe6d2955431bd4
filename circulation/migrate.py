import logging
import os
from pathlib import Path

from peewee_migrate import Router

from circulation.config import configure_logging
from circulation.db import db

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(os.getenv(
    "CIRCULATION_MIGRATIONS",
    Path(__file__).resolve().parent.parent / "migrations",
))


class Utf8Router(Router):
    """Читает файлы миграций в UTF-8 независимо от локали системы."""

    def read(self, name):
        path = Path(str(self.migrate_dir)) / f"{name}.py"

        code = path.read_text(encoding="utf-8")
        scope = {}
        exec(compile(code, str(path), "exec"), scope)
        return scope.get("migrate"), scope.get("rollback")


def run_migrations(migrate_dir=MIGRATIONS_DIR) -> list:
    Path(db.database).parent.mkdir(parents=True, exist_ok=True)
    db.connect(reuse_if_open=True)
    try:
        router = Utf8Router(db, migrate_dir=str(migrate_dir))
        pending = router.diff
        router.run()
        logger.info("Migrations applied | %s", ", ".join(pending) or "none")
        return pending
    finally:
        if not db.is_closed():
            db.close()


if __name__ == "__main__":
    configure_logging()
    run_migrations()
