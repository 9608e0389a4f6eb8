"""
Render the application's OpenAPI document as YAML so API changes can be
reviewed as a diff against a committed copy.

    python -m src.package_api.openapi_export openapi.yaml
"""

import sys
from pathlib import Path
from typing import Optional

import yaml
from fastapi import FastAPI


def export_openapi(app: FastAPI) -> str:
    return yaml.safe_dump(app.openapi(), sort_keys=False, allow_unicode=True)


def write_openapi(app: FastAPI, path: Path) -> None:
    path.write_text(export_openapi(app), encoding="utf-8")


def main(argv: Optional[list] = None) -> int:
    from .main import app

    args = sys.argv[1:] if argv is None else argv
    if not args:
        sys.stdout.write(export_openapi(app))
    else:
        write_openapi(app, Path(args[0]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
