#!/usr/bin/env python3
"""Dump every recipe one identity can see in the remote store.

Loads the recipes owned by ``--user-id`` through the same store the
library uses and prints each aggregate (recipe, ingredients, steps).

Usage
-----
Set environment variables and run::

    export BAKEBOOK_BASE_URL="https://<project>.supabase.co/rest/v1"
    export BAKEBOOK_API_KEY="<anon or service key>"
    python scripts/dump_recipes.py --user-id 7b1c...

Options::

    --user-id ID         Owner whose recipes are loaded (required)
    --json               Output as machine-readable JSON
    --output FILE        Write output to FILE instead of stdout
    --verbose            Debug logging (with redacted request traces)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from bakebook import BakebookClient, BakebookConfig, Identity, Recipe, SessionState  # noqa: E402


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _format_recipe(recipe: Recipe) -> list[str]:
    lines = [
        _section(f"{recipe.title or '(untitled)'}  id={recipe.id}"),
        f"  temperature : {recipe.baking_temperature or '-'}",
        f"  time        : {recipe.baking_time or '-'}",
        f"  created     : {recipe.created_at.isoformat()}",
        f"  updated     : {recipe.updated_at.isoformat()}",
    ]
    if recipe.description:
        lines.append(f"  description : {recipe.description}")
    lines.append(f"  ingredients ({len(recipe.ingredients)}):")
    for ingredient in recipe.ingredients:
        mark = "x" if ingredient.is_used else " "
        amount = " ".join(part for part in (ingredient.amount, ingredient.unit) if part)
        lines.append(f"    [{mark}] {ingredient.name}" + (f" ({amount})" if amount else ""))
    lines.append(f"  steps ({len(recipe.steps)}):")
    for step in recipe.steps:
        lines.append(f"    {step.order + 1}. {step.description}")
    return lines


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Dump the recipes of one owner for debugging / development.",
    )
    parser.add_argument("--user-id", required=True, help="Owner whose recipes are loaded")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = BakebookConfig.from_env(api_trace_enabled=args.verbose)
    session = SessionState(Identity(user_id=args.user_id))

    async with BakebookClient(config, session) as client:
        store = client.recipes
        if store.last_error is not None:
            print(f"Refresh failed: {store.last_error}", file=sys.stderr)
            sys.exit(1)
        recipes = client.list_recipes()

    result: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "user_id": args.user_id,
        "recipes": [recipe.model_dump(mode="json") for recipe in recipes],
    }

    if args.json_mode:
        payload = json.dumps(result, indent=2, ensure_ascii=False)
        if args.output:
            Path(args.output).write_text(payload, encoding="utf-8")
            print(f"JSON written to {args.output}", file=sys.stderr)
        else:
            print(payload)
        return

    out = [_section("bakebook dump_recipes"), f"  time      : {result['timestamp']}", f"  user_id   : {args.user_id}"]
    out.append(f"  recipes   : {len(recipes)}")
    for recipe in recipes:
        out.extend(_format_recipe(recipe))
    text = "\n".join(out)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        print(f"Output written to {args.output}")
    else:
        print(text)


if __name__ == "__main__":
    asyncio.run(main())
