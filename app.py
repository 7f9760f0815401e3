"""
Curatarr: self-hosted media library curation.

Scans media folders, parses release filenames, organizes files into a
templated library layout and verifies content (ffprobe, security checks)
through a background queue.
"""
import logging
import sys
from functools import partial

from flask import Flask

import blueprint_registry
import config
import content_verify
import diagnostics
import probe
import security_scan
import telemetry
import verify_checks
from db_migrations import get_migration_status
from job_events import record_invalid_transition, record_job_status_transition
from library_db import LibraryDB
from library_jobs import (
    PhaseVerifyJobs,
    make_verify_result_recorder,
    run_library_scan,
    run_organize,
    start_thread,
)
from media_utils import human_size, validate_config_paths
from scanner import FileOrganizer, LibraryScanner
from startup_runner import initialize_runtime_services
from verify_queue import VerifyQueue
from verify_store import VerifyResultStore

app = Flask(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("curatarr")


# =============================================================================
# Persistence
# =============================================================================
_DB_PATH = config.DB_PATH
library = LibraryDB(_DB_PATH)
verify_store = VerifyResultStore(config.VERIFY_RESULTS_FILE)


# =============================================================================
# Scanner / Organizer
# =============================================================================
scanner = LibraryScanner()
organizer = FileOrganizer()
scan_state = {"last_result": None}
organize_state = {"last_summary": None}


# =============================================================================
# Verification
# =============================================================================
verify_queue = VerifyQueue(
    max_concurrent=config.VERIFY_MAX_CONCURRENT,
    poll_interval=config.VERIFY_POLL_INTERVAL,
    retention_sec=config.VERIFY_RETENTION_HOURS * 3600,
    record_transition=partial(record_job_status_transition, telemetry=telemetry),
    record_invalid_transition=partial(record_invalid_transition, telemetry=telemetry, logger=logger),
)
verify_queue.on_job_complete(make_verify_result_recorder(verify_store, logger))
phase_jobs = PhaseVerifyJobs(
    run_verify=verify_checks.run_verify,
    store=verify_store,
    logger=logger,
    settings=config.get_verify_settings,
)


def _on_settings_saved():
    verify_queue.max_concurrent = config.VERIFY_MAX_CONCURRENT
    verify_queue.poll_interval = config.VERIFY_POLL_INTERVAL
    verify_queue.retention_sec = config.VERIFY_RETENTION_HOURS * 3600


_run_library_scan = partial(
    run_library_scan,
    scanner,
    library=library,
    telemetry=telemetry,
    logger=logger,
    verify_queue=verify_queue,
)


def _scan_with_settings(folders):
    return _run_library_scan(folders, verify_on_scan=config.VERIFY_ON_SCAN)


_run_organize = partial(run_organize, organizer, library=library, telemetry=telemetry, logger=logger)
_validate_config = partial(validate_config_paths, config, logger)
_runtime_config_validation = partial(diagnostics.runtime_config_validation, config)


blueprint_registry.register_blueprints(app, {
    "config": config,
    "logger": logger,
    "db_path": _DB_PATH,
    "get_migration_status": get_migration_status,
    "library": library,
    "scanner": scanner,
    "organizer": organizer,
    "scan_state": scan_state,
    "organize_state": organize_state,
    "run_library_scan": _scan_with_settings,
    "run_organize": _run_organize,
    "start_thread": start_thread,
    "verify_queue": verify_queue,
    "verify_store": verify_store,
    "phase_jobs": phase_jobs,
    "run_verify": verify_checks.run_verify,
    "verify_content": content_verify.verify_content,
    "quick_verify": content_verify.quick_verify,
    "security_scan": security_scan,
    "telemetry": telemetry,
    "human_size": human_size,
    "ffprobe_available": probe.ffprobe_available,
    "runtime_config_validation": _runtime_config_validation,
    "on_settings_saved": _on_settings_saved,
})


def run_main():
    initialize_runtime_services(
        config=config,
        logger=logger,
        library=library,
        verify_queue=verify_queue,
        validate_config=_validate_config,
        ffprobe_available=probe.ffprobe_available,
    )
    app.run(host="0.0.0.0", port=5000, debug=False)


if __name__ == "__main__":
    run_main()
