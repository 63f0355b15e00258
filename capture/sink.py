# sink.py
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from .models import ScreenshotRecord

logger = logging.getLogger(__name__)


class DirectorySink:
    """Writes screenshot buffers, a metadata sidecar and per-page reports to one directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def save(self, filename: str, data: bytes) -> Path:
        path = self.directory / filename
        path.write_bytes(data)
        logger.debug(f"Wrote {len(data)} bytes to {path}")
        return path

    def _write_json(self, filename: str, payload: Any) -> Path:
        path = self.directory / filename
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False, default=str)
        return path

    def write_metadata(self, url: str, records: List[ScreenshotRecord], files: List[str]) -> Path:
        entries = []
        for record, filename in zip(records, files):
            entry = record.to_metadata()
            entry['filename'] = filename
            entry['original_name'] = record.filename
            entry['url'] = url
            entries.append(entry)
        return self._write_json('metadata.json', self._merge_metadata(entries))

    def _merge_metadata(self, entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        path = self.directory / 'metadata.json'
        existing = []
        if path.exists():
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    existing = json.load(f)
            except json.JSONDecodeError as e:
                logger.warning(f"Replacing unreadable metadata file {path}: {e}")
        names = {entry['filename'] for entry in entries}
        return [e for e in existing if e.get('filename') not in names] + entries

    def write_report(self, name: str, report: Dict[str, Any]) -> Path:
        path = self._write_json(f"{name}_report.json", report)
        logger.info(f"Capture report written to {path}")
        return path
