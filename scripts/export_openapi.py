"""Write the Health Timeline OpenAPI document to openapi.json at the repo root.

Agents that consume the timeline read this file to discover the endpoints.
"""

import json
import sys
from pathlib import Path

from main import app

OUTPUT_PATH = Path(__file__).resolve().parent.parent / "openapi.json"


def main() -> int:
    document = app.openapi()
    OUTPUT_PATH.write_text(json.dumps(document, indent=2, sort_keys=False) + "\n")
    paths = len(document.get("paths", {}))
    print(f"Wrote {OUTPUT_PATH} ({paths} paths)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
