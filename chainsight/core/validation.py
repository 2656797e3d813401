"""Input file validation for chainsight."""
import json
from pathlib import Path
from typing import Any


class ValidationError(Exception):
    """Validation error."""


def _check_record(record: Any, file_path: Path) -> None:
    if not isinstance(record, dict):
        raise ValidationError(f"Expected JSON objects in {file_path}, got {type(record).__name__}")
    if 'repos' in record:
        if 'project_name' not in record:
            raise ValidationError(f"Project record without 'project_name' in {file_path}")
        return
    missing_fields = [name for name in ('owner', 'name') if not record.get(name)]
    if missing_fields:
        raise ValidationError(
            f"Missing required fields in {file_path}: {missing_fields}",
        )


def validate_target_file(file_path: Path) -> bool:
    """
    Validate a target list file.

    Accepted formats:
    - JSONL, one `{"owner": ..., "name": ...}` object per line
    - JSON array of the same objects
    - JSON array (or JSONL) of project records with `project_name` and `repos`

    Only the first record is inspected.

    Raises:
        ValidationError if invalid
    """
    if not file_path.exists():
        raise ValidationError(f"File does not exist: {file_path}")

    if not file_path.is_file():
        raise ValidationError(f"Not a file: {file_path}")

    if file_path.stat().st_size == 0:
        raise ValidationError(f"File is empty: {file_path}")

    if file_path.suffix == '.json':
        try:
            with open(file_path, encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {file_path}: {e}")
        if not isinstance(data, list):
            raise ValidationError(f"Expected a JSON array in {file_path}")
        if not data:
            raise ValidationError(f"File is empty: {file_path}")
        _check_record(data[0], file_path)
        return True

    with open(file_path, encoding='utf-8') as f:
        first_line = ''
        for line in f:
            if line.strip():
                first_line = line.strip()
                break
    if not first_line:
        raise ValidationError(f"File is empty: {file_path}")

    try:
        record = json.loads(first_line)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {file_path}: {e}")
    _check_record(record, file_path)
    return True
