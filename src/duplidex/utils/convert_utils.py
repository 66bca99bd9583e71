"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

utils/convert_utils.py
Human-readable conversions used by the CLI: sizes, timestamps and id lists.
"""
import time
from datetime import datetime
from typing import Iterable, List, Optional

from duplidex.core.errors import ConfigurationError

SIZE_UNITS = {
    'PB': 1024 ** 5, 'P': 1024 ** 5,
    'TB': 1024 ** 4, 'T': 1024 ** 4,
    'GB': 1024 ** 3, 'G': 1024 ** 3,
    'MB': 1024 ** 2, 'M': 1024 ** 2,
    'KB': 1024, 'K': 1024,
    'B': 1,
}


class ConvertUtils:
    @staticmethod
    def bytes_to_human(size_bytes: int) -> str:
        """
        Convert bytes to a human-readable string (e.g., 512B, 1.50KB, 3.20MB).
        Whole bytes are printed without decimals.
        """
        if size_bytes < 1024:
            return f"{max(0, int(size_bytes))}B"

        value = float(size_bytes)
        for unit in ["KB", "MB", "GB", "TB", "PB"]:
            value /= 1024
            if value < 1024:
                return f"{value:.2f}{unit}"
        return f"{value:.2f}PB"

    @staticmethod
    def human_to_bytes(size_str: str) -> int:
        """
        Convert a human-readable size string to bytes.
        Supports formats: '1.5GB', '2048KB', '1000', '1K', '1M', '1G', etc.
        Raises ConfigurationError for negative sizes or invalid formats.
        """
        size_str = size_str.strip().upper()
        if not size_str:
            raise ConfigurationError("Empty size")

        # Longest suffix first so 'KB' is not read as 'K' + 'B'
        for unit in sorted(SIZE_UNITS, key=len, reverse=True):
            if size_str.endswith(unit):
                value_str = size_str[:-len(unit)].strip()
                try:
                    value = float(value_str)
                except ValueError:
                    raise ConfigurationError(f"Invalid numeric value in size: '{value_str}'")
                if value < 0:
                    raise ConfigurationError(f"Negative size not allowed: '{size_str}'")
                return int(value * SIZE_UNITS[unit])

        try:
            value = int(size_str)
        except ValueError:
            raise ConfigurationError(
                f"Invalid size format: '{size_str}'. "
                f"Supported formats: 1.5GB, 2048KB, 1000, 1K, 1M, etc."
            )
        if value < 0:
            raise ConfigurationError(f"Negative size not allowed: '{size_str}'")
        return value

    @staticmethod
    def is_valid_size_format(size_str: str) -> bool:
        try:
            ConvertUtils.human_to_bytes(size_str)
            return True
        except ConfigurationError:
            return False

    @staticmethod
    def timestamp_to_human(timestamp: float, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
        """
        Convert a Unix timestamp (e.g. a file mtime) to local time.
        """
        try:
            return time.strftime(fmt, time.localtime(timestamp))
        except (OverflowError, OSError, ValueError):
            return "Invalid timestamp"

    @staticmethod
    def datetime_to_human(value: Optional[datetime], fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
        """Format a history timestamp; rows written without one show as '-'."""
        if value is None:
            return "-"
        return value.strftime(fmt)

    @staticmethod
    def parse_ids(values: Iterable[str]) -> List[int]:
        """
        Parse ids given as separate arguments or comma-separated ('3 4,5').
        Raises ConfigurationError on anything that is not a positive integer.
        """
        ids = []
        for value in values:
            for part in str(value).split(","):
                part = part.strip()
                if not part:
                    continue
                if not part.isdigit() or int(part) <= 0:
                    raise ConfigurationError(f"Invalid id: '{part}'")
                ids.append(int(part))
        return ids
