#!/usr/bin/env python3
"""
OpenAPI specification generator for the orders web API.

Builds the document from the Powertools resolver routes and Pydantic models
and writes it as JSON or YAML.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

import yaml


def get_openapi_spec() -> Dict[str, Any]:
    """
    Generate OpenAPI specification from the application.

    Returns:
        OpenAPI specification dictionary
    """
    sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

    # Importing the handler registers its routes on the shared resolver
    import order_rules.handlers.orders_handler  # noqa: F401
    from order_rules.handlers.utils.rest_api_resolver import app

    return json.loads(app.get_openapi_json_schema(
        title="Orders API",
        version="1.0.0",
        description="Order creation and validation backed by Dataverse",
    ))


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate the orders API OpenAPI document")
    parser.add_argument("--output", "-o", type=Path, default=Path("openapi.json"), help="Output file")
    parser.add_argument("--format", "-f", choices=["json", "yaml"], default="json", help="Output format")
    args = parser.parse_args()

    spec = get_openapi_spec()

    with args.output.open("w", encoding="utf-8") as handle:
        if args.format == "yaml":
            yaml.safe_dump(spec, handle, sort_keys=False)
        else:
            json.dump(spec, handle, indent=2)

    print(f"OpenAPI specification written to {args.output} ({len(spec.get('paths', {}))} paths)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
