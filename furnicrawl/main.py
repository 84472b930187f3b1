"""Command-line interface entry point for FurniCrawl."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Iterable

import uvicorn
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from dotenv import load_dotenv

from furnicrawl.errors import BrowserLaunchError, ConfigurationError
from furnicrawl.logging_config import get_logger
from furnicrawl.orchestrator import CategoryRun, CrawlOrchestrator, CrawlSettings, RunSummary
from furnicrawl.retailers import registry
from furnicrawl.server import create_app
from furnicrawl.trigger import RunSupervisor

LOGGER = get_logger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "retailer": "ikea",
    "category_url": None,
    "delay_between_requests_ms": 1500,
    "max_concurrent_requests": 2,
    "cache_location": "crawled.json",
    "country": "ca",
    "language": "en",
    "headless": True,
    "max_pages": None,
    "navigation_timeout_ms": 45000,
    "max_attempts": 3,
    "checkpoint_every": 10,
    "results_dir": "results",
    "sqlite_path": "furnicrawl.sqlite",
    "health_log": "logs/health.jsonl",
    "healthcheck_url": "",
    "user_agent": None,
    "api_key": None,
    "schedule": {"minutes": None},
    "server": {"host": "0.0.0.0", "port": 3000},
}

_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "FURNICRAWL_RETAILER": ("retailer", str),
    "FURNICRAWL_COUNTRY": ("country", str),
    "FURNICRAWL_LANGUAGE": ("language", str),
    "FURNICRAWL_CONCURRENCY": ("max_concurrent_requests", int),
    "FURNICRAWL_DELAY_MS": ("delay_between_requests_ms", int),
    "FURNICRAWL_CACHE": ("cache_location", str),
    "FURNICRAWL_SQLITE_PATH": ("sqlite_path", str),
    "FURNICRAWL_RESULTS_DIR": ("results_dir", str),
    "FURNICRAWL_API_KEY": ("api_key", str),
    "HEALTHCHECK_URL": ("healthcheck_url", str),
}


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the application."""

    parser = argparse.ArgumentParser(
        description="Crawl furniture retailer categories and store standardized products."
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.yml"),
        help="YAML configuration file (default: config.yml).",
    )
    parser.add_argument("--retailer", type=str, help="Retailer to crawl (ikea, wayfair, article, 1stdibs).")
    parser.add_argument("--category-url", dest="category_url", type=str, help="Crawl this category instead of the default.")
    parser.add_argument(
        "--concurrency",
        type=int,
        help="Product pages processed concurrently (default: max_concurrent_requests).",
    )
    parser.add_argument("--max-pages", dest="max_pages", type=int, help="Stop paginating after this many listing pages.")
    parser.add_argument("--cache", dest="cache_location", type=str, help="Path of the crawl cache JSON file.")
    parser.add_argument("--country", type=str, help="Country code used in retailer base URLs.")
    parser.add_argument("--language", type=str, help="Language code used in retailer base URLs.")
    parser.add_argument(
        "--headful",
        action="store_true",
        help="Show the browser window instead of running headless.",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Run the crawl without persisting data to the database.",
    )
    parser.add_argument("--list-retailers", action="store_true", help="Print supported retailers and exit.")
    parser.add_argument(
        "--list-categories",
        action="store_true",
        help="Print the default categories of --retailer and exit.",
    )
    parser.add_argument(
        "--all-categories",
        dest="all_categories",
        action="store_true",
        help="Crawl every default category of --retailer in turn, sharing one cache.",
    )
    parser.add_argument(
        "--every",
        type=int,
        metavar="MINUTES",
        help="Repeat the crawl on this interval instead of running once.",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Start the HTTP trigger server instead of crawling directly.",
    )
    parser.add_argument("--port", type=int, help="Port for --serve.")
    return parser.parse_args(list(argv) if argv is not None else None)


def _deep_merge(default: Any, override: Any) -> Any:
    if not isinstance(default, dict) or not isinstance(override, dict):
        return deepcopy(override)

    merged: dict[str, Any] = deepcopy(default)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def _load_config(path: Path) -> dict[str, Any]:
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    else:
        LOGGER.info("Configuration file %s not found; using defaults", path)
        data = {}

    merged = _deep_merge(DEFAULT_CONFIG, data) if data else deepcopy(DEFAULT_CONFIG)
    return _apply_env_overrides(merged)


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    for env_name, (key, caster) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or not raw.strip():
            continue
        try:
            config[key] = caster(raw.strip())
        except ValueError:
            LOGGER.warning("Ignoring %s=%r: expected %s", env_name, raw, caster.__name__)
    return config


def _apply_cli_overrides(config: dict[str, Any], args: argparse.Namespace) -> dict[str, Any]:
    merged = deepcopy(config)
    for key in ("retailer", "category_url", "max_pages", "cache_location", "country", "language"):
        value = getattr(args, key, None)
        if value is not None:
            merged[key] = value
    if args.concurrency is not None:
        merged["max_concurrent_requests"] = args.concurrency
    if args.headful:
        merged["headless"] = False
    if args.validate:
        merged["validate_only"] = True
    if args.every is not None:
        merged.setdefault("schedule", {})["minutes"] = args.every
    if args.port is not None:
        merged.setdefault("server", {})["port"] = args.port
    return merged


def build_settings(config: dict[str, Any]) -> CrawlSettings:
    settings = CrawlSettings.from_config(config)
    if settings.max_concurrent_requests <= 0:
        raise ConfigurationError("max_concurrent_requests must be positive")
    if settings.max_pages is not None and settings.max_pages <= 0:
        raise ConfigurationError("max_pages must be positive when set")
    return settings


def _print_summary(summary: RunSummary) -> None:
    payload = summary.as_dict()
    payload.pop("failures", None)
    print(json.dumps(payload, indent=2))


async def _run_once(config: dict[str, Any]) -> RunSummary:
    orchestrator = CrawlOrchestrator(build_settings(config))
    summary = await orchestrator.run(config["retailer"], config.get("category_url"))
    _print_summary(summary)
    return summary


async def _run_all_categories(config: dict[str, Any]) -> list[CategoryRun]:
    orchestrator = CrawlOrchestrator(build_settings(config))
    results = await orchestrator.run_categories(config["retailer"])
    for result in results:
        payload = result.as_dict()
        if result.summary is not None:
            payload["summary"].pop("failures", None)
        print(json.dumps(payload, indent=2))
    failed = [result.name for result in results if result.status != "completed"]
    LOGGER.info("Crawled %s categories, %s failed", len(results), len(failed))
    if failed:
        LOGGER.warning("Failed categories: %s", ", ".join(failed))
    return results


async def _serve(config: dict[str, Any]) -> None:
    settings = build_settings(config)
    supervisor = RunSupervisor(lambda: CrawlOrchestrator(settings))
    app = create_app(
        supervisor,
        api_key=config.get("api_key"),
        default_retailer=config["retailer"],
    )
    server_conf = config.get("server") or {}
    host = server_conf.get("host", "0.0.0.0")
    port = int(server_conf.get("port", 3000))
    LOGGER.info("Starting trigger server | host=%s port=%s", host, port)
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, reload=False, log_config=None))
    await server.serve()


async def _run_scheduler(config: dict[str, Any], interval_minutes: int) -> None:
    scheduler = AsyncIOScheduler()

    async def scheduled_cycle() -> None:
        try:
            await _run_once(config)
        except (ConfigurationError, BrowserLaunchError):
            LOGGER.exception("Scheduled crawl aborted")
        except Exception:
            LOGGER.exception("Scheduled crawl failed")

    await scheduled_cycle()
    scheduler.add_job(scheduled_cycle, "interval", minutes=interval_minutes, max_instances=1)
    scheduler.start()
    LOGGER.info("Scheduler started with interval=%s minutes", interval_minutes)

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        LOGGER.info("Shutdown signal received; stopping scheduler")
    finally:
        scheduler.shutdown(wait=False)


async def _async_main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    load_dotenv()

    config = _apply_cli_overrides(_load_config(args.config), args)

    if args.list_retailers:
        for name in registry.supported_retailers():
            print(name)
        return 0

    if args.list_categories:
        adapter = registry.resolve(config["retailer"], config)
        for category in adapter.get_categories():
            print(f"{category.name}\t{category.url}")
        return 0

    if args.serve:
        await _serve(config)
        return 0

    if args.all_categories:
        results = await _run_all_categories(config)
        return 0 if all(result.status == "completed" for result in results) else 1

    interval = (config.get("schedule") or {}).get("minutes")
    if interval:
        await _run_scheduler(config, int(interval))
        return 0

    summary = await _run_once(config)
    return 0 if summary.status == "completed" else 1


def main(argv: Iterable[str] | None = None) -> None:
    try:
        code = asyncio.run(_async_main(argv))
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except BrowserLaunchError as exc:
        LOGGER.error("Browser launch failed: %s", exc)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user")
        return
    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()
