"""Curatarr telemetry: Prometheus counters for scans, organizer runs and
verification jobs, plus signed webhooks for the events those jobs finish with.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
import os
import socket
import threading
import time
from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

import requests

logger = logging.getLogger("curatarr")

SIGNATURE_HEADER = "X-Curatarr-Signature"

COUNTER_HELP = {
    "curatarr_scans_total": "Library scans by outcome.",
    "curatarr_scan_items_total": "Media files found by library scans.",
    "curatarr_organize_runs_total": "Organizer runs by mode and outcome.",
    "curatarr_organize_files_total": "Organizer file results by operation and status.",
    "curatarr_verifications_total": "Content verifications by outcome.",
    "curatarr_verify_job_transitions_total": "Verification job status transitions.",
    "curatarr_verify_job_terminal_total": "Verification jobs that reached a terminal status.",
    "curatarr_verify_job_invalid_transitions_total": "Rejected verification job status transitions.",
    "curatarr_webhooks_total": "Webhook deliveries by result.",
    "curatarr_webhook_events_total": "Events handed to the webhook dispatcher.",
}

LabelKey = Tuple[Tuple[str, str], ...]


def _escape(value) -> str:
    return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _sample(name: str, labels: LabelKey, value) -> str:
    if not labels:
        return f"{name} {value}"
    label_str = ",".join(f'{k}="{_escape(v)}"' for k, v in labels)
    return f"{name}{{{label_str}}} {value}"


def gauge_lines(name: str, help_text: str, samples) -> List[str]:
    """Render one gauge family. ``samples`` is a number or a list of ``(labels_dict, value)``."""
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} gauge"]
    if not isinstance(samples, list):
        samples = [({}, samples)]
    for labels, value in samples:
        lines.append(_sample(name, tuple(sorted((k, str(v)) for k, v in labels.items())), value))
    return lines


class Metrics:
    """Thread-safe counters keyed by name and label set."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[Tuple[str, LabelKey], float] = defaultdict(float)

    def inc(self, name: str, amount: float = 1.0, **labels):
        key = (name, tuple(sorted((k, str(v)) for k, v in labels.items())))
        with self._lock:
            self._counters[key] += amount

    def snapshot(self):
        with self._lock:
            return dict(self._counters)

    def render(self, dynamic_lines: Iterable[str] | None = None) -> str:
        """Prometheus text format: counters grouped by family, then ``dynamic_lines``."""
        families: Dict[str, List[Tuple[LabelKey, float]]] = {}
        for (name, labels), value in sorted(self.snapshot().items()):
            families.setdefault(name, []).append((labels, value))
        lines = []
        for name, samples in families.items():
            lines.append(f"# HELP {name} {COUNTER_HELP.get(name, name)}")
            lines.append(f"# TYPE {name} counter")
            lines.extend(_sample(name, labels, value) for labels, value in samples)
        lines.extend(dynamic_lines or [])
        return "\n".join(lines) + "\n"


metrics = Metrics()


def _webhook_urls():
    # comma or newline separated
    raw = os.getenv("CURATARR_WEBHOOK_URLS", "")
    return [part.strip() for part in raw.replace("\n", ",").split(",") if part.strip()]


def webhook_settings():
    return {
        "urls": _webhook_urls(),
        "secret": os.getenv("CURATARR_WEBHOOK_SECRET", ""),
        "timeout": float(os.getenv("CURATARR_WEBHOOK_TIMEOUT_SEC", "5")),
    }


def sign_body(body: bytes, secret: str) -> str:
    """``sha256=<hex>`` HMAC of the request body, or "" without a secret."""
    if not secret:
        return ""
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def emit_event(event_type: str, payload=None):
    """Queue ``event_type`` for webhook delivery on a daemon thread."""
    payload = dict(payload or {})
    payload.setdefault("ts", time.time())
    payload.setdefault("host", socket.gethostname())
    payload["event"] = event_type
    metrics.inc("curatarr_webhook_events_total", event=event_type)

    settings = webhook_settings()
    if not settings["urls"]:
        metrics.inc("curatarr_webhooks_total", result="skipped", event=event_type)
        return
    threading.Thread(target=_post_event, args=(event_type, payload, settings), daemon=True).start()


def _post_event(event_type: str, payload: dict, settings):
    body = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    headers = {"Content-Type": "application/json", "User-Agent": "Curatarr/telemetry"}
    signature = sign_body(body, settings["secret"])
    if signature:
        headers[SIGNATURE_HEADER] = signature
    for url in settings["urls"]:
        try:
            resp = requests.post(url, data=body, headers=headers, timeout=settings["timeout"])
        except requests.RequestException as exc:
            metrics.inc("curatarr_webhooks_total", result="error", event=event_type)
            logger.warning("Webhook %s for %s failed: %s", url, event_type, exc)
            continue
        metrics.inc("curatarr_webhooks_total", result="sent", event=event_type, code=f"{resp.status_code // 100}xx")
        if resp.status_code >= 400:
            logger.warning("Webhook %s for %s returned HTTP %s", url, event_type, resp.status_code)
