"""File utility functions."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional


class FileHelper:
    """Helper class for file operations."""

    @staticmethod
    def read_json(file_path: Path) -> Any:
        """Read and parse a JSON document.

        Args:
            file_path: Path to the JSON file

        Returns:
            Parsed JSON value
        """
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    @staticmethod
    def write_json(file_path: Path, data: Any, mode: Optional[int] = None) -> None:
        """Write a JSON document atomically.

        The content goes to a temporary file in the same directory which
        then replaces the target, so readers never see a half written file.

        Args:
            file_path: Destination path
            data: JSON-serializable value
            mode: Optional permission bits for the final file
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{file_path.name}.", suffix=".tmp", dir=str(file_path.parent)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            if mode is not None:
                os.chmod(tmp_name, mode)
            os.replace(tmp_name, file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    def format_file_size(size_bytes: float) -> str:
        """Format file size in human readable format.

        Args:
            size_bytes: Size in bytes

        Returns:
            Formatted size string
        """
        if size_bytes == 0:
            return "0 B"

        size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
        i = 0

        while size_bytes >= 1024 and i < len(size_names) - 1:
            size_bytes /= 1024.0
            i += 1

        return f"{size_bytes:.1f} {size_names[i]}"
