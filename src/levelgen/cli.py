"""Command-line interface for level generation."""

import argparse
import sys
import time
from pathlib import Path

import structlog


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate procedural tile-grid levels"
    )
    parser.add_argument(
        "--algorithm",
        "-a",
        type=str,
        default=None,
        help="Generator: bsp, cellular, maze, forest, city, composite (default: by genre and depth)",
    )
    parser.add_argument(
        "--width", type=int, default=80, help="Level width (default: 80)"
    )
    parser.add_argument(
        "--height", type=int, default=50, help="Level height (default: 50)"
    )
    parser.add_argument(
        "--seed", type=int, default=12345, help="Random seed (default: 12345)"
    )
    parser.add_argument(
        "--genre", type=str, default="fantasy", help="Genre tag (default: fantasy)"
    )
    parser.add_argument(
        "--biomes",
        type=int,
        default=None,
        help="Number of biome regions; selects the composite generator",
    )
    parser.add_argument(
        "--levels", type=int, default=1, help="Number of stacked levels (default: 1)"
    )
    parser.add_argument(
        "--depth", type=int, default=0, help="Dungeon depth (default: 0)"
    )
    parser.add_argument(
        "--difficulty", type=float, default=0.5, help="Difficulty in [0, 1] (default: 0.5)"
    )
    parser.add_argument(
        "--config", type=str, default=None, help="Path to generator settings TOML"
    )
    parser.add_argument(
        "--stats", action="store_true", help="Print tile statistics after each level"
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write the ASCII map to this file instead of stdout",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose logging"
    )
    return parser


def configure_logging(verbose: bool) -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(10 if verbose else 20),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def format_stats(stats) -> str:
    lines = [
        f"Size: {stats.width}x{stats.height}",
        f"Walkable: {stats.walkable_ratio:.1%}",
        f"Connected: {stats.connected_ratio:.1%}",
        f"Rooms: {stats.room_count}",
        f"Stairs: {stats.stairs_up} up, {stats.stairs_down} down",
    ]
    for tile, count in sorted(stats.tile_counts.items()):
        lines.append(f"  {tile.glyph} {tile.name.lower():<14} {count}")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for level generation."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    logger = structlog.get_logger()

    # Import here to avoid slow startup for --help
    from .config import GenerationParams, GeneratorSettings, load_settings
    from .dispatch import generate, select_kind
    from .exceptions import GenerationError
    from .generators.validation import compute_stats
    from .multilevel import LevelGenerator

    custom: dict[str, object] = {"width": args.width, "height": args.height}
    if args.algorithm:
        custom["algorithm"] = args.algorithm
    if args.biomes is not None:
        custom["biomeCount"] = args.biomes

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            logger.error("config_not_found", path=args.config)
            return 1
        settings = load_settings(config_path)
        logger.info("config_loaded", path=str(config_path))
    else:
        settings = GeneratorSettings()

    start_time = time.time()
    try:
        params = GenerationParams(
            difficulty=args.difficulty,
            depth=args.depth,
            genre_id=args.genre,
            custom=custom,
        )
        if args.levels > 1:
            kinds = {
                i: select_kind(params.model_copy(update={"depth": args.depth + i}))
                for i in range(args.levels)
            }
            levels = LevelGenerator(settings, kinds).generate_multi_level(
                args.levels, args.seed, params
            )
        else:
            levels = [generate(args.seed, params, settings)]
    except GenerationError as exc:
        logger.error("generation_failed", error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        return 1
    gen_time = time.time() - start_time

    blocks = []
    for terrain in levels:
        header = f"Level {terrain.level} ({terrain.kind}, seed {terrain.seed})"
        block = f"{header}\n{terrain.to_ascii()}"
        if args.stats:
            block += "\n\n" + format_stats(compute_stats(terrain))
        blocks.append(block)
    text = "\n\n".join(blocks) + "\n"

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text)
        print(f"Saved to {output_path}")
    else:
        sys.stdout.write(text)

    logger.info("cli_done", levels=len(levels), seconds=round(gen_time, 3))
    return 0


if __name__ == "__main__":
    sys.exit(main())
