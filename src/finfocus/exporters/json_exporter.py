import json
import os
from typing import Any, Dict, List

import aiofiles

from .base_exporter import BaseExporter


class JSONExporter(BaseExporter):
    DEFAULT_FILENAME = "finfocus-report.json"

    async def export(self, data: List[Dict[str, Any]], path: str | None = None) -> str:
        out_path = path or self.DEFAULT_FILENAME
        rows = list(data or [])
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)

        async with aiofiles.open(out_path, "w", encoding="utf-8") as fh:
            content = json.dumps(rows, ensure_ascii=False, indent=2, sort_keys=True)
            await fh.write(content + "\n")
        return out_path


class NDJSONExporter(BaseExporter):
    """Writes one JSON object per line."""

    DEFAULT_FILENAME = "finfocus-report.ndjson"

    async def export(self, data: List[Dict[str, Any]], path: str | None = None) -> str:
        out_path = path or self.DEFAULT_FILENAME
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)

        async with aiofiles.open(out_path, "w", encoding="utf-8") as fh:
            for row in data or []:
                await fh.write(json.dumps(row, ensure_ascii=False, sort_keys=True) + "\n")
        return out_path
