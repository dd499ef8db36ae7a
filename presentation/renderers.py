"""HTML and JSON adapters for occupancy results."""
import json
from html import escape
from typing import List, Sequence

from processor.models import OccupancyRow, UnitAvailability

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
table {{ border-collapse: collapse; }}
th, td {{ border: 1px solid #ccc; padding: 4px 8px; vertical-align: top; }}
</style>
</head>
<body>
<h1>{title}</h1>
<table>
<thead>
<tr><th>Date</th><th>Day</th><th>Checking in</th><th>Checking out</th></tr>
</thead>
<tbody>
{rows}
</tbody>
</table>
</body>
</html>
"""


def _names_cell(names: Sequence[str]) -> str:
    return '<br>'.join(escape(name) for name in names)


def render_html_table(rows: Sequence[OccupancyRow], title: str = 'Check-ins and check-outs') -> str:
    """Render occupancy rows as a standalone HTML page."""
    rendered = []
    for row in rows:
        rendered.append(
            '<tr>'
            f'<td>{row.date.isoformat()}</td>'
            f'<td>{row.weekday.value}</td>'
            f'<td>{_names_cell(row.checking_in)}</td>'
            f'<td>{_names_cell(row.checking_out)}</td>'
            '</tr>'
        )
    return PAGE_TEMPLATE.format(title=escape(title), rows='\n'.join(rendered))


def unit_to_dict(unit: UnitAvailability) -> dict:
    return {
        'name': unit.unit_name,
        'check_ins': [day.isoformat() for day in sorted(unit.check_ins)],
        'check_outs': [day.isoformat() for day in sorted(unit.check_outs)],
    }


def row_to_dict(row: OccupancyRow) -> dict:
    return {
        'date': row.date.isoformat(),
        'weekday': row.weekday.value,
        'checking_in': list(row.checking_in),
        'checking_out': list(row.checking_out),
    }


def serialize_units(units: Sequence[UnitAvailability]) -> str:
    """Serialize per-unit records as a JSON array."""
    return json.dumps([unit_to_dict(unit) for unit in units])


def serialize_rows(rows: Sequence[OccupancyRow]) -> str:
    """Serialize occupancy rows as a JSON array."""
    payload: List[dict] = [row_to_dict(row) for row in rows]
    return json.dumps(payload)
