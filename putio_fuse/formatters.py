"""Renderers for the diagnostic pseudo-files."""

import json
import math

from .models import AccountInfo, Entry, Transfer

_COLUMN_PADDING = 3


def humanize_bytes(size: int) -> str:
    """Human readable SI size: 950B, 1.2kB, 34MB."""
    if size < 10:
        return f"{size}B"
    base = 1000
    units = ["B", "kB", "MB", "GB", "TB"]
    exponent = min(int(math.floor(math.log(size) / math.log(base))), len(units) - 1)
    value = math.floor(size / base ** exponent * 10 + 0.5) / 10
    if value < 10:
        return f"{value:.1f}{units[exponent]}"
    return f"{value:.0f}{units[exponent]}"


def format_account(account: AccountInfo) -> str:
    return json.dumps(account.raw, indent=2, sort_keys=True) + "\n"


def format_entry(entry: Entry) -> str:
    return json.dumps(entry.to_dict(), indent=2) + "\n"


def format_transfers(transfers: list[Transfer]) -> str:
    """Render active transfers as a column-aligned table."""
    if not transfers:
        return "No transfer found\n"

    rows = [["Name", "Status", "▼", "▲"], ["----", "------", "-", "-"]]
    for transfer in transfers:
        if transfer.completed:
            rows.append([transfer.name, "✓", " ", " "])
        else:
            status = f"{humanize_bytes(transfer.downloaded)}/{humanize_bytes(transfer.size)}"
            rows.append([
                transfer.name,
                status,
                humanize_bytes(transfer.down_speed) + "/s",
                humanize_bytes(transfer.up_speed) + "/s",
            ])

    widths = [max(len(row[col]) for row in rows) + _COLUMN_PADDING for col in range(4)]
    lines = ["".join(cell.ljust(width) for cell, width in zip(row, widths)) for row in rows]
    return "\n".join(lines) + "\n"
