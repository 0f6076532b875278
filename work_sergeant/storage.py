"""State storage: small JSON documents, JSONL archives and counters.

Documents are always replaced wholesale. JsonStateStore writes them to a
temp file in the same directory and renames it over the target, so a crash
mid-write leaves either the old document or the new one, never a mix.
"""
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import SchemaError

logger = logging.getLogger("work_sergeant.storage")

CURRENT_SESSION = "current_session"
CURRENT_BREAK = "current_break"
ENFORCEMENT = "enforcement"
POMODORO_COUNT = "pomodoro_count"


def archive_name(kind: str, ts: datetime) -> str:
    """Monthly archive name, e.g. ``sessions_2024-05``."""
    return f"{kind}_{ts.strftime('%Y-%m')}"


def timer_handle_name(role: str) -> str:
    return f"timer_{role}"


class StateStore:
    """Interface for read/replace-whole-document persistence."""

    def read_document(self, name: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def write_document(self, name: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def delete_document(self, name: str) -> None:
        raise NotImplementedError

    def quarantine(self, name: str) -> None:
        """Set a document that failed validation aside so it is not reused."""
        raise NotImplementedError

    def append_record(self, name: str, record: Dict[str, Any]) -> None:
        raise NotImplementedError

    def read_records(self, name: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def list_archives(self, prefix: str) -> List[str]:
        """Names of the archives starting with ``prefix``, sorted."""
        raise NotImplementedError

    def delete_archive(self, name: str) -> None:
        raise NotImplementedError

    def read_counter(self, name: str) -> int:
        raise NotImplementedError

    def write_counter(self, name: str, value: int) -> None:
        raise NotImplementedError


class JsonStateStore(StateStore):
    """File-backed store rooted at a single directory."""

    def __init__(self, base_dir):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _doc_path(self, name: str) -> Path:
        return self.base_dir / f"{name}.json"

    def _archive_path(self, name: str) -> Path:
        return self.base_dir / f"{name}.jsonl"

    def _atomic_write_text(self, path: Path, text: str) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.base_dir), prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def read_document(self, name: str) -> Optional[Dict[str, Any]]:
        path = self._doc_path(name)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Corrupted state file {path}: {e}. Treating as empty.")
            self.quarantine(name)
            return None

        if not isinstance(data, dict):
            logger.warning(f"State file {path} does not hold an object. Treating as empty.")
            self.quarantine(name)
            return None
        return data

    def write_document(self, name: str, data: Dict[str, Any]) -> None:
        path = self._doc_path(name)
        self._atomic_write_text(path, json.dumps(data, indent=2) + "\n")
        logger.debug(f"Wrote {path}")

    def delete_document(self, name: str) -> None:
        try:
            self._doc_path(name).unlink()
        except FileNotFoundError:
            pass

    def quarantine(self, name: str) -> None:
        path = self._doc_path(name)
        if not path.exists():
            return
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        target = path.with_name(f"{path.name}.corrupt-{stamp}")
        try:
            os.replace(path, target)
            logger.warning(f"Preserved corrupt state file as {target}")
        except OSError as e:
            logger.error(f"Could not preserve corrupt state file {path}: {e}")
            self.delete_document(name)

    def append_record(self, name: str, record: Dict[str, Any]) -> None:
        path = self._archive_path(name)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")
        logger.debug(f"Archived record to {path}")

    def read_records(self, name: str) -> List[Dict[str, Any]]:
        path = self._archive_path(name)
        if not path.exists():
            return []

        records = []
        with open(path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning(f"Skipping bad line {lineno} in {path}: {e}")
                    continue
                if isinstance(record, dict):
                    records.append(record)
        return records

    def list_archives(self, prefix: str) -> List[str]:
        return sorted(path.stem for path in self.base_dir.glob(f"{prefix}*.jsonl"))

    def delete_archive(self, name: str) -> None:
        try:
            self._archive_path(name).unlink()
            logger.debug(f"Deleted archive {name}")
        except FileNotFoundError:
            pass

    def read_counter(self, name: str) -> int:
        path = self.base_dir / name
        if not path.exists():
            return 0
        try:
            return max(0, int(path.read_text().strip() or 0))
        except ValueError:
            logger.warning(f"Invalid counter in {path}, resetting to 0")
            return 0

    def write_counter(self, name: str, value: int) -> None:
        self._atomic_write_text(self.base_dir / name, f"{value}\n")


class MemoryStateStore(StateStore):
    """In-process store with the same semantics, for tests and embedding."""

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.archives: Dict[str, List[Dict[str, Any]]] = {}
        self.counters: Dict[str, int] = {}
        self.quarantined: Dict[str, Dict[str, Any]] = {}

    def read_document(self, name: str) -> Optional[Dict[str, Any]]:
        data = self.documents.get(name)
        return json.loads(json.dumps(data)) if data is not None else None

    def write_document(self, name: str, data: Dict[str, Any]) -> None:
        self.documents[name] = json.loads(json.dumps(data))

    def delete_document(self, name: str) -> None:
        self.documents.pop(name, None)

    def quarantine(self, name: str) -> None:
        if name in self.documents:
            self.quarantined[name] = self.documents.pop(name)

    def append_record(self, name: str, record: Dict[str, Any]) -> None:
        self.archives.setdefault(name, []).append(json.loads(json.dumps(record)))

    def read_records(self, name: str) -> List[Dict[str, Any]]:
        return [dict(r) for r in self.archives.get(name, [])]

    def list_archives(self, prefix: str) -> List[str]:
        return sorted(name for name in self.archives if name.startswith(prefix))

    def delete_archive(self, name: str) -> None:
        self.archives.pop(name, None)

    def read_counter(self, name: str) -> int:
        return self.counters.get(name, 0)

    def write_counter(self, name: str, value: int) -> None:
        self.counters[name] = value


def load_model(store: StateStore, name: str, model_cls):
    """
    Read a document and build ``model_cls`` from it.

    A document that fails validation is quarantined and read as missing.

    Args:
        store: Store to read from
        name: Document name
        model_cls: Class with a ``from_dict`` classmethod

    Returns:
        Model instance, or None if the slot is empty or invalid
    """
    data = store.read_document(name)
    if data is None:
        return None
    try:
        return model_cls.from_dict(data)
    except SchemaError as e:
        logger.warning(f"Invalid {name} document: {e}. Treating as empty.")
        store.quarantine(name)
        return None
