from __future__ import annotations

VERIFY_JOB_TRANSITIONS = {
    None: {"queued"},
    "queued": {"running"},
    "running": {"completed", "failed"},
    "completed": set(),
    "failed": set(),
}


def job_transition_allowed(old_status, new_status, state_transitions=VERIFY_JOB_TRANSITIONS):
    return new_status in state_transitions.get(old_status, set())


def record_job_status_transition(job_id, old_status, new_status, job_data, *, telemetry):
    metadata = job_data.get("metadata") or {}
    source = metadata.get("source") or "unknown"
    telemetry.metrics.inc(
        "curatarr_verify_job_transitions_total",
        from_status=old_status or "none",
        to_status=new_status,
        source=source,
    )
    if new_status in ("completed", "failed"):
        result = job_data.get("result") or {}
        telemetry.metrics.inc(
            "curatarr_verify_job_terminal_total",
            status=new_status,
            type=job_data.get("type", "file"),
        )
        telemetry.emit_event(
            f"verify_job_{new_status}",
            {
                "job_id": job_id,
                "type": job_data.get("type"),
                "path": job_data.get("path"),
                "title": metadata.get("title"),
                "source": source,
                "status": new_status,
                "passed": result.get("passed", result.get("safe")),
                "error": job_data.get("error"),
            },
        )


def record_invalid_transition(job_id, old_status, new_status, *, telemetry, logger):
    telemetry.metrics.inc(
        "curatarr_verify_job_invalid_transitions_total",
        from_status=old_status or "none",
        to_status=new_status,
    )
    logger.warning("Rejected invalid job status transition %s -> %s for %s", old_status, new_status, job_id)
