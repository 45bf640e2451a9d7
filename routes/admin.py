# routes/admin.py
import logging

from flask import Blueprint, current_app, render_template, request

from backup import BackupError, BackupManager, dumper_for
from extensions import db
from security import CsrfRejected, csrf_tokens, permission_required

admin_bp = Blueprint('admin', __name__)
logger = logging.getLogger(__name__)

# shown on the backup page as the documented procedure
BACKUP_STRATEGY = [
    ("Daily Automated Backups", "Scheduled at 2:00 AM via cron / Task Scheduler running the dump utility"),
    ("Retention Policy", "7 daily backups, 4 weekly backups, 12 monthly backups"),
    ("Storage Location", "Outside the application root, plus an offsite copy"),
    ("Recovery Testing", "Monthly restore tests to verify backup integrity"),
    ("Recovery Command", "mysql -u <user> -p <database> < backup_file.sql"),
]


def backup_manager():
    dumper = current_app.config.get("BACKUP_DUMPER") or dumper_for(
        db.engine, current_app.config.get("MYSQLDUMP_PATH", "mysqldump")
    )
    return BackupManager(current_app.config["BACKUP_DIR"], dumper)


@admin_bp.route('/backup', methods=['GET', 'POST'])
@permission_required("backup")
def backup(ctx):
    message, error, status = None, None, 200
    try:
        manager = backup_manager()
    except BackupError:
        logger.exception("No backup method for this database")
        return render_template(
            'backup.html',
            ctx=ctx,
            message=None,
            error="Backup failed. Please check the server log.",
            strategy=BACKUP_STRATEGY,
            backups=[],
        ), 500

    if request.method == 'POST':
        try:
            csrf_tokens.consume(request.form.get(csrf_tokens.field_name))
            filename = manager.create()
            message = f"Backup created successfully: {filename}"
            logger.info("Backup %s created by %s", filename, ctx.user)
        except CsrfRejected:
            error, status = "Access denied.", 403
        except (BackupError, OSError):
            logger.exception("Backup requested by %s failed", ctx.user)
            error, status = "Backup failed. Please check the server log.", 500

    return render_template(
        'backup.html',
        ctx=ctx,
        message=message,
        error=error,
        strategy=BACKUP_STRATEGY,
        backups=manager.list(),
    ), status
