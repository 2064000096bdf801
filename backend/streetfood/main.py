"""Command-line job for the street food ratings sync engine."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .config import LOG_FORMAT, LOG_LEVEL, NEARBY_RADIUS_METERS, USE_MOCK_DATA
from .errors import StreetFoodError
from .models import NewRating
from .sync.engine import SyncEngine
from .sync.services import create_services


def write_payload(payload: dict, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, indent=2, default=str))
    logging.info("Saved %s", output_path)
    return output_path


def groups_payload(engine: SyncEngine) -> dict:
    groups = sorted(engine.groups, key=lambda g: (-g.average_score, g.display_name))
    return {
        "date": datetime.now(timezone.utc).isoformat(),
        "groups": [g.to_dict() for g in groups],
    }


async def cmd_groups(engine: SyncEngine, args: argparse.Namespace) -> dict:
    payload = groups_payload(engine)
    if args.output:
        write_payload(payload, args.output)
    return payload


async def cmd_nearby(engine: SyncEngine, args: argparse.Namespace) -> dict:
    carts = engine.nearby(args.lat, args.lon, args.radius)
    return {"nearby": [g.to_dict() for g in carts]}


async def cmd_submit(engine: SyncEngine, args: argparse.Namespace) -> dict:
    new_rating = NewRating(
        display_name=args.name,
        latitude=args.lat,
        longitude=args.lon,
        score=args.score,
        review_text=args.review,
        photo=args.photo.read_bytes(),
        second_photo=args.second_photo.read_bytes() if args.second_photo else None,
    )
    created = await engine.submit(new_rating)
    return {"rating": created.model_dump(mode="json")}


async def cmd_remove(engine: SyncEngine, args: argparse.Namespace) -> dict:
    return {"rating_id": args.rating_id, "deleted": await engine.remove(args.rating_id)}


async def cmd_profile(engine: SyncEngine, args: argparse.Namespace) -> dict:
    return engine.summary().to_dict()


async def cmd_watch(engine: SyncEngine, args: argparse.Namespace) -> dict:
    logging.info("Watching for live ratings for %.0fs", args.seconds)
    await asyncio.sleep(args.seconds)
    logging.info(engine.stats.summary())
    return groups_payload(engine)


async def cmd_purge(engine: SyncEngine, args: argparse.Namespace) -> dict:
    await engine.purge_all()
    return {"purged": True}


COMMANDS = {
    "groups": cmd_groups,
    "nearby": cmd_nearby,
    "submit": cmd_submit,
    "remove": cmd_remove,
    "profile": cmd_profile,
    "watch": cmd_watch,
    "purge": cmd_purge,
}


async def run(args: argparse.Namespace) -> dict:
    async with create_services(mock_data=args.mock_data) as services:
        engine = services.engine
        await engine.bootstrap()
        return await COMMANDS[args.command](engine, args)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync and group street food cart ratings")
    parser.add_argument("--mock-data", action="store_true", default=USE_MOCK_DATA, help="Use bundled sample carts")
    parser.add_argument("--log-level", type=str, default=LOG_LEVEL, help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    groups = sub.add_parser("groups", help="Print per-cart groups")
    groups.add_argument("--output", type=Path, default=None, help="Also save the groups JSON here")

    nearby = sub.add_parser("nearby", help="Carts near a coordinate")
    nearby.add_argument("--lat", type=float, required=True)
    nearby.add_argument("--lon", type=float, required=True)
    nearby.add_argument("--radius", type=float, default=NEARBY_RADIUS_METERS, help="Metres")

    submit = sub.add_parser("submit", help="Rate a cart")
    submit.add_argument("--name", type=str, default=None, help="Cart name")
    submit.add_argument("--lat", type=float, required=True)
    submit.add_argument("--lon", type=float, required=True)
    submit.add_argument("--score", type=int, required=True)
    submit.add_argument("--review", type=str, default=None)
    submit.add_argument("--photo", type=Path, required=True, help="Food photo (required)")
    submit.add_argument("--second-photo", type=Path, default=None, help="Cart photo")

    remove = sub.add_parser("remove", help="Delete one of your ratings")
    remove.add_argument("rating_id")

    sub.add_parser("profile", help="Your rating summary")

    watch = sub.add_parser("watch", help="Listen for live ratings")
    watch.add_argument("--seconds", type=float, default=60.0)

    purge = sub.add_parser("purge", help="Delete ALL ratings and locations")
    purge.add_argument("--yes", action="store_true", help="Confirm the purge")

    args = parser.parse_args(argv)
    if args.command == "purge" and not args.yes:
        parser.error("purge deletes every rating and location; pass --yes to confirm")
    return args


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format=LOG_FORMAT)
    try:
        payload = asyncio.run(run(args))
    except StreetFoodError as exc:
        logging.error("%s (%s)", exc.user_message, exc)
        return 1
    except ValidationError as exc:
        logging.error("Invalid rating: %s", exc)
        return 2
    print(json.dumps(payload, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
