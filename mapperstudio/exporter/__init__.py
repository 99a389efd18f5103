"""Export snapshots: backend save/confirm/workbook and local JSON files."""
