import argparse
import json
import logging
import random
import sys

from .config import API_BASE_URL, API_TOKEN, DEFAULT_LIMIT, DEFAULT_SIMILAR_LIMIT
from .api_client import PlatformAPIError, PlatformClient
from .models import ContentType, InvalidArgument, parse_timestamp_naive, utcnow
from .profile import UserPreferenceProfile
from .recommender import ContentRecommender, Recommendation
from .snapshot import Snapshot, load_snapshot
from .weights import load_scoring_weights

logger = logging.getLogger(__name__)


def _parse_content_type(value: str) -> ContentType:
    try:
        return ContentType(value.strip().lower())
    except ValueError:
        choices = ", ".join(t.value for t in ContentType)
        raise argparse.ArgumentTypeError(f"invalid content type '{value}' (choose from {choices})")


def _non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer '{value}'")
    if parsed < 0:
        raise argparse.ArgumentTypeError(f"limit must be non-negative, got {parsed}")
    return parsed


def _load_inputs(args: argparse.Namespace) -> Snapshot:
    """Read a snapshot file, or fetch the same inputs from the platform API."""
    if args.snapshot:
        return load_snapshot(args.snapshot)

    with PlatformClient(base_url=args.api_url, token=args.token) as client:
        catalog = client.get_contents()
        if not args.token:
            logger.warning("No API token given; fetching catalog only (no personalization)")
            return Snapshot(catalog=catalog)
        history = client.get_watch_history()
        return Snapshot(
            catalog=catalog,
            history=history,
            ratings=client.get_ratings(),
            watchlist=client.get_watchlist(),
            # Only this viewer's history is reachable over the API
            history_pool=[entry.content_id for entry in history],
        )


def _build_recommender(args: argparse.Namespace) -> ContentRecommender:
    weights = load_scoring_weights(args.weights)
    if args.now:
        try:
            now = parse_timestamp_naive(args.now)
        except ValueError as e:
            raise InvalidArgument(f"Invalid --now timestamp '{args.now}': {e}") from e
    else:
        now = utcnow()
    rng = random.Random(args.seed)
    return ContentRecommender(weights=weights, clock=lambda: now, rng=rng)


def _output_recommendations(recs: list[Recommendation], args: argparse.Namespace, heading: str) -> None:
    """Format and log recommendations in the requested format."""
    if args.format == 'json':
        output = [
            {
                "id": r.item.id,
                "title": r.item.title,
                "score": round(r.score, 3),
                "genre": r.item.genre,
                "category_id": r.item.category_id,
                "content_type": r.item.content_type.value if r.item.content_type else None,
                "is_premium": r.item.is_premium,
            }
            for r in recs
        ]
        logger.info(json.dumps(output, indent=2))
        return

    if not recs:
        logger.info("No recommendations.")
        return

    logger.info(f"\n{heading}:")
    for i, r in enumerate(recs, 1):
        year = f" ({r.item.release_year})" if r.item.release_year else ""
        premium = " [premium]" if r.item.is_premium else ""
        logger.info(f"{i}. {r.item.title}{year}{premium} - Score: {r.score:.2f}")


def cmd_recommend(args: argparse.Namespace) -> None:
    """Generate personalized recommendations."""
    inputs = _load_inputs(args)
    recommender = _build_recommender(args)

    exclude = inputs.watchlist if args.exclude_watchlist else set()
    recs = recommender.recommend(
        inputs.catalog,
        inputs.history,
        inputs.ratings,
        limit=args.limit,
        exclude=exclude,
        content_type=args.content_type,
    )
    if not inputs.history and args.format == 'text':
        logger.info("No watch history; showing a random selection.")
    _output_recommendations(recs, args, "Recommended for you")


def cmd_similar(args: argparse.Namespace) -> None:
    """Find content similar to a specific item."""
    inputs = _load_inputs(args)
    target = inputs.find(args.content_id)
    if target is None:
        raise InvalidArgument(f"No content found with id {args.content_id}")

    recs = _build_recommender(args).similar_to(target, inputs.catalog, limit=args.limit)
    _output_recommendations(recs, args, f"Similar to {target.title}")


def cmd_trending(args: argparse.Namespace) -> None:
    """Rank content by watch count across the history pool."""
    inputs = _load_inputs(args)
    recs = _build_recommender(args).trending(inputs.catalog, inputs.history_pool, limit=args.limit)
    _output_recommendations(recs, args, "Trending")


def cmd_popular(args: argparse.Namespace) -> None:
    """Rank content by popularity (no viewer data needed)."""
    inputs = _load_inputs(args)
    recs = _build_recommender(args).popular(inputs.catalog, limit=args.limit)
    _output_recommendations(recs, args, "Popular")


def _profile_to_dict(profile: UserPreferenceProfile) -> dict:
    return {
        "favorite_genres": list(profile.favorite_genres or []),
        "favorite_categories": list(profile.favorite_categories or []),
        "favorite_content_types": [t.value for t in profile.favorite_content_types or []],
        "favorite_tags": list(profile.favorite_tags or []),
        "preferred_duration": profile.preferred_duration.value if profile.preferred_duration else None,
        "prefers_premium": profile.prefers_premium,
        "ratings": {str(k): v for k, v in (profile.ratings or {}).items()},
    }


def cmd_profile(args: argparse.Namespace) -> None:
    """Show the viewer's derived preference profile."""
    inputs = _load_inputs(args)
    profile = _build_recommender(args).profile(inputs.catalog, inputs.history, inputs.ratings)

    if args.format == 'json':
        logger.info(json.dumps(_profile_to_dict(profile), indent=2))
        return

    if profile.is_empty:
        logger.info("No watch history matched the catalog; no preferences derived.")
        return

    data = _profile_to_dict(profile)
    logger.info("\nPreference profile")
    for label, key in (
        ("Genres", "favorite_genres"),
        ("Categories", "favorite_categories"),
        ("Content types", "favorite_content_types"),
        ("Tags", "favorite_tags"),
    ):
        if data[key]:
            logger.info(f"  {label}: {', '.join(str(v) for v in data[key])}")
    if data["preferred_duration"]:
        logger.info(f"  Preferred duration: {data['preferred_duration']}")
    logger.info(f"  Prefers premium: {'yes' if profile.prefers_premium else 'no'}")
    if data["ratings"]:
        logger.info(f"  Rated items: {len(data['ratings'])}")


def _add_source_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--snapshot", help="JSON snapshot file with catalog/history/ratings")
    parser.add_argument("--api-url", default=API_BASE_URL, help="Platform API base URL (when no snapshot)")
    parser.add_argument("--token", default=API_TOKEN, help="Bearer token for viewer endpoints")
    parser.add_argument("--weights", help="JSON file with scoring weight overrides")
    parser.add_argument("--now", help="Reference time (ISO 8601) for recency decay")
    parser.add_argument("--seed", type=int, help="Seed for the no-history random fallback")
    parser.add_argument("--format", choices=['text', 'json'], default='text', help="Output format")


def main():
    parser = argparse.ArgumentParser(description="Streaming content recommender")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    rec_parser = subparsers.add_parser("recommend", help="Personalized recommendations")
    _add_source_args(rec_parser)
    rec_parser.add_argument("--limit", type=_non_negative_int, default=DEFAULT_LIMIT, help="Number of recommendations")
    rec_parser.add_argument("--content-type", type=_parse_content_type, help="Only recommend this content type")
    rec_parser.add_argument("--include-watchlist", dest="exclude_watchlist", action="store_false",
                            help="Allow watchlisted items in results (excluded by default)")
    rec_parser.set_defaults(func=cmd_recommend)

    similar_parser = subparsers.add_parser("similar", help="Find content similar to an item")
    similar_parser.add_argument("content_id", type=int, help="Content id")
    _add_source_args(similar_parser)
    similar_parser.add_argument("--limit", type=_non_negative_int, default=DEFAULT_SIMILAR_LIMIT,
                                help="Number of similar items")
    similar_parser.set_defaults(func=cmd_similar)

    trending_parser = subparsers.add_parser("trending", help="Most watched content")
    _add_source_args(trending_parser)
    trending_parser.add_argument("--limit", type=_non_negative_int, default=DEFAULT_LIMIT, help="Number of items")
    trending_parser.set_defaults(func=cmd_trending)

    popular_parser = subparsers.add_parser("popular", help="Most popular content")
    _add_source_args(popular_parser)
    popular_parser.add_argument("--limit", type=_non_negative_int, default=DEFAULT_LIMIT, help="Number of items")
    popular_parser.set_defaults(func=cmd_popular)

    profile_parser = subparsers.add_parser("profile", help="Show the viewer's preference profile")
    _add_source_args(profile_parser)
    profile_parser.set_defaults(func=cmd_profile)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        args.func(args)
    except (InvalidArgument, PlatformAPIError) as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
