import os
import random
import time

from backends import open_backend
from catalog.backup import backup_batches
from catalog.batch_store import BatchStore, now_utc_iso
from catalog.config import CONFIG_PATH, Settings, load_config
from catalog.consistency import ConsistencyJob, RepairReport
from catalog.emailer import get_global_recipients, send_email
from catalog.errors import CatalogError
from catalog.flash_sale import expire_flash_sale
from catalog.index import CatalogIndex
from catalog.logger import get_logger
from catalog.migration import repartition
from catalog.registry import BatchRegistry
from catalog.report import build_html_report, build_plaintext_report, build_subject

logger = get_logger(__name__)

POLL_MINUTES = int(os.getenv("POLL_MINUTES", "60"))
MODE = os.getenv("MODE", "once").lower()  # once | daemon | repartition | backup
DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"
PRUNE_ORPHANS = os.getenv("PRUNE_ORPHANS", "true").lower() == "true"
BACKUP_BEFORE_REPAIR = os.getenv("BACKUP_BEFORE_REPAIR", "false").lower() == "true"
EXPIRE_FLASH_SALE = os.getenv("EXPIRE_FLASH_SALE", "true").lower() == "true"
REPORT_UNCHANGED = os.getenv("REPORT_UNCHANGED", "false").lower() == "true"


def jitter_sleep_minutes(minutes: int) -> None:
    base = max(1, minutes)
    jitter = random.uniform(-0.1 * base, 0.1 * base)
    total = base + jitter
    logger.info("Sleeping %.1f minutes before next cycle.", total)
    time.sleep(total * 60)


def build_components(settings: Settings, backend=None):
    backend = backend or open_backend(settings)
    if settings.batches:
        registry = BatchRegistry.from_ids(
            settings.batches, settings.batch_collection, settings.batch_prefix
        )
    else:
        registry = BatchRegistry.discover(
            backend, settings.batch_collection, settings.batch_prefix
        )
    store = BatchStore.from_settings(backend, registry, settings)
    index = CatalogIndex(backend, settings.index_collection)
    return backend, store, index


def store_label(settings: Settings) -> str:
    if settings.backend == "http":
        return settings.store_url
    if settings.backend == "sqlite":
        return settings.db_path
    return settings.backend


def send_report(report: RepairReport, settings: Settings) -> None:
    if not (report.has_changes or report.errors or REPORT_UNCHANGED):
        logger.info("No drift found; no report sent.")
        return

    recipients = settings.recipients or get_global_recipients()
    if not recipients:
        logger.warning("Report has changes but no recipients are configured.")
        return

    label = store_label(settings)
    send_email(
        build_subject(report, label),
        build_html_report(report, label),
        build_plaintext_report(report, label),
        recipients,
    )


def run_repair(settings: Settings, backend=None) -> RepairReport:
    backend, store, index = build_components(settings, backend)
    report = RepairReport(started_at=now_utc_iso())

    # Pre-steps record their failures; the repair itself always runs
    if BACKUP_BEFORE_REPAIR and not DRY_RUN:
        try:
            backup_batches(store, settings.backup_dir, report=report)
        except OSError as e:
            logger.error("Backup to %s failed: %s", settings.backup_dir, e)
            report.add_error(settings.backup_dir, f"backup: {e}")

    if EXPIRE_FLASH_SALE and not DRY_RUN:
        try:
            expire_flash_sale(store, backend, settings.flash_sale_collection, report=report)
        except CatalogError as e:
            logger.error("Flash sale expiry failed: %s", e)
            report.add_error(settings.flash_sale_collection, f"flash sale expiry: {e}")

    report = ConsistencyJob(store, index).run(
        prune_orphans=PRUNE_ORPHANS, dry_run=DRY_RUN, report=report
    )
    for err in report.errors:
        logger.error("Repair error in %s: %s", err["batchId"], err["message"])
    return report


def run_once() -> int:
    settings = load_config(CONFIG_PATH)
    report = run_repair(settings)
    send_report(report, settings)
    return 1 if report.errors else 0


def run_repartition() -> int:
    settings = load_config(CONFIG_PATH)
    _, store, _ = build_components(settings)
    backup_batches(store, settings.backup_dir)
    batch_ids = repartition(store, settings.items_per_batch)
    logger.info("Repartitioned into %s; run the repair job to refresh the index.", batch_ids)
    return 0


def run_backup() -> int:
    settings = load_config(CONFIG_PATH)
    _, store, _ = build_components(settings)
    paths = backup_batches(store, settings.backup_dir)
    logger.info("Wrote %d backup files to %s.", len(paths), settings.backup_dir)
    return 0


def run_daemon() -> None:
    logger.info("Starting daemon; repair every %d minutes.", POLL_MINUTES)
    while True:
        try:
            settings = load_config(CONFIG_PATH)
            report = run_repair(settings)
            send_report(report, settings)
        except Exception as e:
            logger.exception("Unhandled error in daemon loop: %s", e)

        jitter_sleep_minutes(POLL_MINUTES)


if __name__ == "__main__":
    try:
        if MODE == "daemon":
            run_daemon()
        elif MODE == "repartition":
            raise SystemExit(run_repartition())
        elif MODE == "backup":
            raise SystemExit(run_backup())
        else:
            raise SystemExit(run_once())
    except SystemExit:
        raise
    except Exception as e:
        logger.exception("Fatal repair error: %s", e)
        raise SystemExit(2)
