"""JSON-file store for the last verification result of each library item.

Keys are ``"{kind}:{id}"``; the last write wins.
"""
from __future__ import annotations

import json
import logging
import os
import threading

logger = logging.getLogger("curatarr")


def result_key(kind, item_id):
    return f"{kind}:{item_id}"


class VerifyResultStore:
    def __init__(self, path):
        self.path = path
        self._lock = threading.Lock()

    def _load(self):
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data):
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, self.path)

    def load_all(self):
        with self._lock:
            return self._load()

    def get(self, key):
        return self.load_all().get(key)

    def save(self, key, value):
        with self._lock:
            data = self._load()
            data[key] = value
            self._write(data)
        logger.debug("Saved verify result %s", key)
