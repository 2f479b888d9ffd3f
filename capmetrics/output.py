"""
Output Manager - file writing for comparison artifacts
Writes CSV, JSON, Markdown and plain text into one output directory and
keeps a running count of what was written.

Content is written exactly as given: no timestamps or run ids are added,
so rerunning on identical inputs reproduces identical files.
"""

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


class OutputManager:
    """Writes artifacts under a single base directory"""

    def __init__(self, base_dir: Union[str, Path] = "."):
        """
        Args:
            base_dir: Directory every artifact is written into (created on demand)
        """
        self.base_dir = Path(base_dir)
        self.logger = logging.getLogger(__name__)
        self.files_written = 0
        self.bytes_written = 0
        self.written: List[Path] = []

    def get_output_path(self, filename: str) -> Path:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        return self.base_dir / filename

    def _record(self, path: Path) -> Path:
        self.files_written += 1
        self.bytes_written += path.stat().st_size
        self.written.append(path)
        return path

    def write_text(self, content: str, filename: str) -> Path:
        """
        Write a text file (UTF-8, LF line endings)

        Returns:
            Path to written file
        """
        output_path = self.get_output_path(filename)
        with open(output_path, 'w', encoding='utf-8', newline='\n') as f:
            f.write(content)
        self.logger.info("Wrote text: %s", output_path)
        return self._record(output_path)

    def write_markdown(self, content: str, filename: str) -> Path:
        """Write Markdown, guaranteeing a trailing newline"""
        return self.write_text(content if content.endswith("\n") else content + "\n", filename)

    def write_json(self, data: Any, filename: str, indent: int = 2) -> Path:
        """
        Write JSON with sorted keys so reruns diff cleanly

        Returns:
            Path to written file
        """
        output_path = self.get_output_path(filename)
        with open(output_path, 'w', encoding='utf-8', newline='\n') as f:
            json.dump(data, f, indent=indent, sort_keys=True, ensure_ascii=False)
            f.write("\n")
        self.logger.info("Wrote JSON: %s", output_path)
        return self._record(output_path)

    def write_csv(self,
                  data: List[Dict],
                  filename: str,
                  fieldnames: Optional[List[str]] = None) -> Path:
        """
        Write CSV file

        Args:
            data: List of row dictionaries
            filename: Output filename
            fieldnames: Column order (defaults to the first row's keys)

        Returns:
            Path to written file
        """
        if not data:
            raise ValueError("No data to write")
        if fieldnames is None:
            fieldnames = list(data[0].keys())

        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=fieldnames, lineterminator="\n")
        writer.writeheader()
        writer.writerows(data)

        output_path = self.get_output_path(filename)
        with open(output_path, 'w', encoding='utf-8', newline='') as f:
            f.write(buf.getvalue())
        self.logger.info("Wrote CSV: %s (%d rows)", output_path, len(data))
        return self._record(output_path)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'files_written': self.files_written,
            'bytes_written': self.bytes_written,
            'base_dir': str(self.base_dir.absolute()),
        }
