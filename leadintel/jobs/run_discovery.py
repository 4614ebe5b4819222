"""CLI job to run the daily multi-city lead discovery."""

import argparse
import logging
import random
from typing import Optional, Sequence

from leadintel.core.config import get_settings
from leadintel.core.db import PostgresRepository, create_pool
from leadintel.jobs.discover import CATEGORIES, CITIES, make_places_search, pick_random, run_discovery

logger = logging.getLogger(__name__)


def run_discovery_job(
    *,
    cities: Optional[Sequence[str]],
    categories: Optional[Sequence[str]],
    random_cities: int,
    random_categories: int,
    pick_limit: Optional[int],
    seed: Optional[int] = None,
    init_schema: bool = False,
) -> None:
    settings = get_settings()
    if not settings.google_api_key:
        raise RuntimeError("GOOGLE_PLACES_API_KEY is required")

    rng = random.Random(seed)
    cities = list(cities) if cities else pick_random(CITIES, random_cities, rng)
    categories = list(categories) if categories else pick_random(CATEGORIES, random_categories, rng)
    if not cities or not categories:
        raise ValueError("At least one city and one category are required")

    repository = PostgresRepository(create_pool(settings))
    if init_schema:
        repository.init_schema()

    logger.info("Running discovery for cities=%s categories=%s", cities, categories)
    report = run_discovery(
        make_places_search(settings),
        repository,
        cities,
        categories,
        pick_limit=pick_limit or settings.daily_pick_limit,
        default_region=settings.default_phone_region,
    )
    logger.info("Completed run: %s", report.to_dict())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the daily lead discovery sweep")
    parser.add_argument("--city", dest="cities", action="append", help="City to search (repeatable)")
    parser.add_argument("--category", dest="categories", action="append", help="Category to search (repeatable)")
    parser.add_argument("--random-cities", type=int, default=3, help="Cities to pick when --city is omitted")
    parser.add_argument(
        "--random-categories", type=int, default=2, help="Categories to pick when --category is omitted"
    )
    parser.add_argument(
        "--limit",
        dest="pick_limit",
        type=int,
        default=get_settings().daily_pick_limit,
        help="Number of daily picks to store",
    )
    parser.add_argument("--seed", type=int, help="Seed for the random rotation")
    parser.add_argument("--init-schema", action="store_true", help="Create tables before running")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    run_discovery_job(
        cities=args.cities,
        categories=args.categories,
        random_cities=args.random_cities,
        random_categories=args.random_categories,
        pick_limit=args.pick_limit,
        seed=args.seed,
        init_schema=args.init_schema,
    )


if __name__ == "__main__":
    main()
