# Overview: Flask CLI command groups for schema bootstrap, snapshots, and integrity maintenance.

# backend/salestrack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to salestrack (PowerShell: $env:FLASK_APP="salestrack").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system seed
#   Insert the sample representative, clients, catalog and packs (idempotent).
#
# Snapshots (JSON exports under SNAPSHOT_DIR, default ./database-backups):
# - python -m flask backups create [--file]
#   Export every table to a new snapshot and update latest-backup.json.
#   --file also copies the whole database (database-backup-<ts>.db, latest-backup.db).
# - python -m flask backups restore [NAME]
#   Save a before-restore snapshot, then upsert the sales of NAME (default: latest).
# - python -m flask backups restore-file [NAME]
#   Replace the whole database with a .db backup (the current file is kept as
#   <db>.before-restore-<ts>.db).
# - python -m flask backups list
#   List snapshots and database copies, newest first.
# - python -m flask backups prune --keep 10
#   Delete all but the newest N snapshots and N database copies (latest aliases are kept).
# - python -m flask backups compare OLD NEW
#   Compare row counts of two snapshots.
#
# Integrity:
# - python -m flask integrity check
#   Report sales whose client/representative/pack reference is broken (exit 1 if any).
# - python -m flask integrity repair [--dry-run]
#   Relink or placeholder broken client references, reassign broken pack references.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import file_backup_service, integrity_service, seed_service, snapshot_service
from .services.live_store import open_live_store
from .services.snapshot_store import ARTIFACT_SUFFIX, DATABASE_SUFFIX, LATEST_ALIAS, SnapshotError, SnapshotStore


def _snapshot_store() -> SnapshotStore:
    return SnapshotStore(current_app.config["SNAPSHOT_DIR"])


@click.group('system')
def system_group():
    """Schema bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db_cli():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


@system_group.command('seed')
@click.option('--password', default=seed_service.DEFAULT_REP_PASSWORD, show_default=True,
              help='Password for the sample representative')
@with_appcontext
def seed_cli(password):
    """
    Insert sample data.

    Creates (when missing):
    - 1 representative (username: ahmed)
    - 5 clients, 8 articles, 5 gifts, 5 packs with their articles
    """
    with open_live_store() as store:
        created = seed_service.seed_sample_data(store, rep_password=password)

    for table_name, count in created.items():
        click.echo(f"PASS {table_name}: {count} created")


# =============================================================================
# BACKUPS
# =============================================================================

@click.group('backups')
def backups_group():
    """Snapshot export, restore and housekeeping."""


@backups_group.command('create')
@click.option('--file', 'with_file', is_flag=True, help='Also copy the whole database file')
@with_appcontext
def create_backup_cli(with_file):
    """
    Export every table to a new snapshot.

    Example:
        flask backups create
        flask backups create --file
    """
    with open_live_store() as store:
        result = snapshot_service.create_snapshot(store, _snapshot_store())

    click.echo(f"PASS Backup created: {result.name}")
    click.echo("\nBacked up tables:")
    for table_name, count in result.counts.items():
        marker = "  (read failed)" if table_name in result.incomplete_tables else ""
        click.echo(f"  - {table_name}: {count} records{marker}")

    if result.incomplete_tables:
        click.echo(f"\nWARN Incomplete tables: {', '.join(result.incomplete_tables)}")

    if with_file:
        try:
            file_result = file_backup_service.create_file_backup(db.engine, _snapshot_store())
        except SnapshotError as e:
            click.echo(f"FAIL {str(e)}")
            raise SystemExit(1)
        click.echo(f"PASS Database file copied: {file_result.name} ({file_result.size / 1024:.1f} KB)")


@backups_group.command('restore')
@click.argument('name', default=LATEST_ALIAS)
@click.option('--no-safety-snapshot', is_flag=True,
              help='Skip the before-restore export of the current tables')
@with_appcontext
def restore_backup_cli(name, no_safety_snapshot):
    """
    Restore sales from a snapshot (default: latest).

    Example:
        flask backups restore
        flask backups restore database-backup-2025-08-05T14-24-07-202000Z.json
    """
    try:
        with open_live_store() as store:
            result = snapshot_service.restore_snapshot(
                store, _snapshot_store(), name, safety_snapshot=not no_safety_snapshot
            )
    except SnapshotError as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)

    if result.safety_snapshot:
        click.echo(f"PASS Current data saved to {result.safety_snapshot}")
    click.echo(f"PASS Restored {result.restored} of {result.total} sales records")
    if result.total:
        click.echo(f"   Inserted: {result.inserted}  Updated: {result.updated}")
    for failure in result.failures:
        click.echo(f"WARN Sale {failure['sale_id']}: {failure['error']}")


@backups_group.command('restore-file')
@click.argument('name', default=LATEST_ALIAS)
@with_appcontext
def restore_file_backup_cli(name):
    """
    Replace the whole database with a .db backup (default: latest-backup.db).

    Example:
        flask backups restore-file database-backup-2025-08-05T14-24-07-202000Z.db
    """
    try:
        result = file_backup_service.restore_file_backup(db.engine, _snapshot_store(), name)
    except SnapshotError as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)

    click.echo(f"PASS Current database saved to {result.safety_copy}")
    click.echo(f"PASS Database restored from {result.source.name}")


@backups_group.command('list')
@with_appcontext
def list_backups_cli():
    """List snapshots and database copies, newest first."""
    store = _snapshot_store()
    snapshots = store.list(ARTIFACT_SUFFIX) + store.list(DATABASE_SUFFIX)
    if not snapshots:
        click.echo("No backups found.")
        return
    snapshots.sort(key=lambda info: (info.created_at, info.name), reverse=True)

    click.echo("\n" + "="*100)
    click.echo(f"{'#':<4} {'Name':<55} {'Size':>12}  {'Created'}")
    click.echo("="*100)

    for index, info in enumerate(snapshots, start=1):
        size_kb = f"{info.size / 1024:.1f} KB"
        created = info.created_at.strftime("%Y-%m-%d %H:%M:%S")
        click.echo(f"{index:<4} {info.name:<55} {size_kb:>12}  {created}")

    click.echo("="*100 + "\n")


@backups_group.command('prune')
@click.option('--keep', 'keep_count', type=int, default=None,
              help='Snapshots to keep (default: SNAPSHOT_KEEP_COUNT)')
@with_appcontext
def prune_backups_cli(keep_count):
    """Delete all but the newest snapshots and database copies; latest aliases are always kept."""
    if keep_count is None:
        keep_count = current_app.config["SNAPSHOT_KEEP_COUNT"]
    if keep_count < 0:
        click.echo("FAIL --keep must be >= 0")
        raise SystemExit(1)

    store = _snapshot_store()
    deleted = store.prune(keep_count, ARTIFACT_SUFFIX) + store.prune(keep_count, DATABASE_SUFFIX)
    if not deleted:
        click.echo("PASS No old backups to clean")
        return

    for name in deleted:
        click.echo(f"DELETE {name}")
    click.echo(f"PASS Deleted {len(deleted)} old backups (kept {keep_count})")


@backups_group.command('compare')
@click.argument('old_name')
@click.argument('new_name')
@with_appcontext
def compare_backups_cli(old_name, new_name):
    """
    Compare row counts between two snapshots.

    Example:
        flask backups compare database-backup-2025-08-05T14-24-07-202000Z latest
    """
    try:
        comparison = snapshot_service.compare_snapshots(_snapshot_store(), old_name, new_name)
    except SnapshotError as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)

    click.echo(f"OLD {comparison.old_name} ({comparison.old_timestamp})")
    click.echo(f"NEW {comparison.new_name} ({comparison.new_timestamp})")
    click.echo("\n" + "="*60)
    click.echo(f"{'Table':<20} {'Old':>10} {'New':>10} {'Delta':>10}")
    click.echo("="*60)
    for table_name, counts in comparison.tables.items():
        click.echo(f"{table_name:<20} {counts['old']:>10} {counts['new']:>10} {counts['delta']:>+10}")
    click.echo("="*60 + "\n")


# =============================================================================
# INTEGRITY
# =============================================================================

@click.group('integrity')
def integrity_group():
    """Referential integrity checks and repair for sales."""


def _echo_defects(defects):
    for defect in defects:
        click.echo(
            f"  - Sale {defect.sale_id}: broken {defect.broken_field} reference ({defect.broken_value})"
        )


@integrity_group.command('check')
@with_appcontext
def integrity_check_cli():
    """
    Report sales with broken references.

    Exits with status 1 when any defect is found.
    """
    with open_live_store() as store:
        summary = integrity_service.summarize(store)

    click.echo("\nTable counts:")
    for table_name, count in summary.counts.items():
        click.echo(f"  - {table_name}: {count}")

    if not summary.defects:
        click.echo("\nPASS All sales references resolve.")
        return

    click.echo(
        f"\nFAIL {summary.total_defects} broken references across {summary.affected_sales} sales"
    )
    for broken_field, count in summary.defects_by_field.items():
        click.echo(f"   {broken_field}: {count}")
    _echo_defects(summary.defects)
    raise SystemExit(1)


@integrity_group.command('repair')
@click.option('--dry-run', is_flag=True, help='Audit only; do not write changes')
@with_appcontext
def integrity_repair_cli(dry_run):
    """
    Repair broken sale references.

    Policy:
    - client: relink by external client_id, else point at a PLACEHOLDER_<id> client.
    - pack: reassign to the first pack by id.
    - representative: reported, never changed.
    Sales are never deleted.
    """
    with open_live_store() as store:
        defects = integrity_service.audit(store)
        if not defects:
            click.echo("PASS No broken references found.")
            return

        click.echo(f"Found {len(defects)} broken references:")
        _echo_defects(defects)
        if dry_run:
            click.echo("\nDRY-RUN No changes written.")
            return

        result = integrity_service.repair(store, defects)

    click.echo("\nResults:")
    click.echo(f"   Resolved: {result.resolved}")
    click.echo(f"   Placeholder clients created: {result.placeholders_created}")
    click.echo(f"   Placeholder clients reused: {result.placeholders_reused}")
    click.echo(f"   Relinked by client id: {result.relinked}")
    click.echo(f"   Packs reassigned: {result.reassigned}")
    click.echo(f"   Remaining broken references: {result.remaining_defects}")

    for item in result.unresolved:
        click.echo(
            f"WARN Sale {item['sale_id']} {item['broken_field']}={item['broken_value']}: {item['reason']}"
        )

    if result.remaining_defects == 0:
        click.echo("PASS All foreign key issues resolved!")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(backups_group)
    app.cli.add_command(integrity_group)
