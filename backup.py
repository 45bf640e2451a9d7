"""Database backups written outside the served application tree.

A dumper is picked from the database URL. Each dumper writes a complete SQL
dump into an open file; nothing here builds a shell command string.
"""
import logging
import os
import sqlite3
import subprocess
from datetime import datetime

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backup_"
BACKUP_SUFFIX = ".sql"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


class BackupError(Exception):
    pass


class MysqlDumper:
    """Runs mysqldump with an argument list; the password goes through MYSQL_PWD."""

    def __init__(self, url, executable="mysqldump"):
        self.url = url
        self.executable = executable

    def command(self):
        args = [self.executable, "--single-transaction"]
        if self.url.host:
            args.append(f"--host={self.url.host}")
        if self.url.port:
            args.append(f"--port={self.url.port}")
        if self.url.username:
            args.append(f"--user={self.url.username}")
        args.append(self.url.database)
        return args

    def dump(self, out):
        env = dict(os.environ)
        if self.url.password:
            env["MYSQL_PWD"] = self.url.password
        try:
            proc = subprocess.run(self.command(), stdout=out, stderr=subprocess.PIPE, env=env, check=False)
        except OSError as e:
            raise BackupError(f"could not run {self.executable}: {e}") from e
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", "replace").strip()
            raise BackupError(f"{self.executable} exited with {proc.returncode}: {stderr}")


class SqliteDumper:
    """Dumps through the sqlite3 driver connection of the application engine."""

    def __init__(self, engine):
        self.engine = engine

    def dump(self, out):
        raw = self.engine.raw_connection()
        try:
            for line in raw.driver_connection.iterdump():
                out.write(f"{line}\n".encode("utf-8"))
        except sqlite3.Error as e:
            raise BackupError(f"sqlite dump failed: {e}") from e
        finally:
            raw.close()


def dumper_for(engine, mysqldump_path="mysqldump"):
    url = engine.url
    backend = url.get_backend_name()
    if backend == "sqlite":
        return SqliteDumper(engine)
    if backend in ("mysql", "mariadb"):
        return MysqlDumper(url, executable=mysqldump_path)
    raise BackupError(f"no dumper for database backend {backend!r}")


class BackupManager:
    def __init__(self, backup_dir, dumper, clock=datetime.now):
        self.backup_dir = backup_dir
        self.dumper = dumper
        self.clock = clock

    def create(self):
        """Write a new timestamped dump and return its filename."""
        os.makedirs(self.backup_dir, mode=0o750, exist_ok=True)
        filename, out = self._open_new()
        path = os.path.join(self.backup_dir, filename)
        try:
            with out:
                self.dumper.dump(out)
        except Exception:
            # only this call's file is removed; earlier backups are never touched
            os.remove(path)
            raise
        logger.info("Backup written to %s (%d bytes)", path, os.path.getsize(path))
        return filename

    def _open_new(self):
        """Exclusively create the next free backup file for the current second."""
        stamp = self.clock().strftime(TIMESTAMP_FORMAT)
        n = 0
        while True:
            suffix = f"_{n}" if n else ""
            filename = f"{BACKUP_PREFIX}{stamp}{suffix}{BACKUP_SUFFIX}"
            try:
                return filename, open(os.path.join(self.backup_dir, filename), "xb")
            except FileExistsError:
                n += 1

    def list(self):
        """Existing backups newest first, as (filename, size in KB) pairs."""
        if not os.path.isdir(self.backup_dir):
            return []
        names = [
            f for f in os.listdir(self.backup_dir)
            if f.startswith(BACKUP_PREFIX) and f.endswith(BACKUP_SUFFIX)
        ]
        names.sort(reverse=True)
        return [
            (name, round(os.path.getsize(os.path.join(self.backup_dir, name)) / 1024, 2))
            for name in names
        ]
