"""Human-readable device summaries and side-by-side comparison."""

from typing import List, Optional, Tuple

from gsmscrape.models import PhoneRecord

__all__ = ["format_record", "compare_records", "COMPARISON_ROWS"]

MISSING = "N/A"

# (label, section, field)
COMPARISON_ROWS: List[Tuple[str, str, str]] = [
    ("Display size", "display", "size"),
    ("Resolution", "display", "resolution"),
    ("Chipset", "platform", "chipset"),
    ("Internal memory", "memory", "internal"),
    ("Main camera", "main_camera", "modules"),
    ("Battery", "battery", "battery_type"),
    ("Price", "misc", "price"),
]


def _field(record: PhoneRecord, section: str, field_name: str) -> Optional[str]:
    values = getattr(record.spec, section, None)
    if not values:
        return None
    return values.get(field_name)


def _one_line(value: Optional[str]) -> str:
    if not value:
        return MISSING
    return " / ".join(value.splitlines())


def format_record(record: PhoneRecord, include_raw: bool = False) -> str:
    """Render a record's normalized sections (and optionally its raw categories)."""
    lines = [
        "=" * 50,
        f"{record.name} ({record.brand})",
        "=" * 50,
        f"ID: {record.detail_id}",
        f"URL: {record.url}",
    ]
    if record.version:
        lines.append(f"Version: {record.version} (updated {record.last_updated_at})")

    for section, values in record.spec.sections().items():
        if values is None:
            continue
        present = {k: v for k, v in values.items() if v}
        if not present:
            continue
        lines.append("")
        lines.append(section.replace("_", " ").upper())
        for key, value in present.items():
            lines.append(f"  {key.replace('_', ' ')}: {_one_line(value)}")

    if include_raw:
        for category in record.raw_categories:
            lines.append("")
            lines.append(f"[{category.title}]")
            for key, value in category.pairs:
                lines.append(f"  {key}: {_one_line(value)}")

    return "\n".join(lines)


def compare_records(a: PhoneRecord, b: PhoneRecord) -> str:
    """Two devices side by side on the headline fields."""
    label_width = max(len(label) for label, _, _ in COMPARISON_ROWS) + 2
    col_width = max(len(a.name), len(b.name), 20) + 2

    lines = [
        f"{'':<{label_width}}{a.name:<{col_width}}{b.name}",
        "-" * (label_width + col_width * 2),
    ]
    for label, section, field_name in COMPARISON_ROWS:
        left = _one_line(_field(a, section, field_name))
        right = _one_line(_field(b, section, field_name))
        lines.append(f"{label:<{label_width}}{left:<{col_width}}{right}")
    return "\n".join(lines)
