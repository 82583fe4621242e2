"""Command-line entry point for gallery-mirror.

- reads an optional config JSON (see config.example.json)
- environment variables override the config file, flags override both
- refuses to start without an API key, session cookie, root node and base URL
"""
from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Dict, Optional

from gallery_mirror.client import PagedTreeClient
from gallery_mirror.downloader import ContentAddressedDownloader
from gallery_mirror.fetcher import DEFAULT_RETRIES, DEFAULT_RETRY_DELAY, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, RetryingFetcher
from gallery_mirror.walker import DEFAULT_PAGE_RETRY_DELAY, DEFAULT_PAGE_RETRY_LIMIT, TreeWalker

ENV_PREFIX = "GALLERY_MIRROR_"
REQUIRED = (
    ("api_key", "--api-key"),
    ("session_cookie", "--session-cookie"),
    ("node_id", "--node-id"),
    ("base_url", "--base-url"),
)
LOG_FORMAT = "%(asctime)s %(levelname)-7s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def load_config(path: Optional[str]) -> Dict:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def resolve_settings(args: argparse.Namespace, cfg: Dict, environ: Optional[Dict[str, str]] = None) -> Dict:
    """Merge flags, environment and config section into one settings dict."""
    environ = os.environ if environ is None else environ
    section = cfg.get("mirror", {}) if isinstance(cfg, dict) else {}
    settings = {
        "output_dir": ".",
        "user_agent": DEFAULT_USER_AGENT,
        "retries": DEFAULT_RETRIES,
        "retry_delay": DEFAULT_RETRY_DELAY,
        "timeout": DEFAULT_TIMEOUT,
        "page_retry_limit": DEFAULT_PAGE_RETRY_LIMIT,
        "page_retry_delay": DEFAULT_PAGE_RETRY_DELAY,
    }
    settings.update({k: v for k, v in section.items() if v is not None})
    for key, _ in REQUIRED:
        env_value = environ.get(ENV_PREFIX + key.upper())
        if env_value:
            settings[key] = env_value
    for key, value in vars(args).items():
        if value is not None and key not in ("config", "debug", "progress"):
            settings[key] = value
    return settings


def configure_logging(outdir: str, debug: bool = False) -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=log_level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    # keep a copy of the run log next to the mirrored files
    try:
        os.makedirs(outdir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(outdir, "logs.txt"), encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        logging.getLogger().addHandler(file_handler)
    except OSError as exc:
        logging.getLogger(__name__).warning("Can't write log file under %s: %s", outdir, exc)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="gallery-mirror",
        description="gallery-mirror: mirror a remote folder/album tree to local disk",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --config config.json
  %(prog)s --api-key KEY --session-cookie COOKIE --node-id abc12 --base-url https://example.com -o photos
        """.strip(),
    )
    p.add_argument("--config", "-c", help="Path to config JSON file")
    p.add_argument("--api-key", dest="api_key", help="API key sent with every listing request")
    p.add_argument("--session-cookie", dest="session_cookie", help="Session cookie value (SMSESS)")
    p.add_argument("--node-id", dest="node_id", help="Root folder node ID")
    p.add_argument("--base-url", dest="base_url", help="Base URL of the gallery site")
    p.add_argument("--output-dir", "-o", dest="output_dir", help="Local directory to mirror into (default: .)")
    p.add_argument("--user-agent", dest="user_agent", help="User-Agent header")
    p.add_argument("--retries", type=int, help=f"Retries on 5xx responses (default: {DEFAULT_RETRIES})")
    p.add_argument(
        "--page-retry-limit",
        dest="page_retry_limit",
        type=int,
        help=f"Attempts per failing page before giving up on the node, 0 = forever (default: {DEFAULT_PAGE_RETRY_LIMIT})",
    )
    p.add_argument("--no-progress", dest="progress", action="store_false", help="Disable progress bars")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p


def main(argv=None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    try:
        cfg = load_config(args.config)
    except (OSError, ValueError) as exc:
        p.error(f"can't read config {args.config}: {exc}")
    settings = resolve_settings(args, cfg)

    missing = [flag for key, flag in REQUIRED if not settings.get(key)]
    if missing:
        p.error("missing required setting(s): " + ", ".join(missing))

    outdir = settings["output_dir"]
    configure_logging(outdir, debug=args.debug)
    logger = logging.getLogger(__name__)

    fetcher = RetryingFetcher(
        settings["session_cookie"],
        user_agent=settings["user_agent"],
        retries=settings["retries"],
        retry_delay=settings["retry_delay"],
        timeout=settings["timeout"],
    )
    client = PagedTreeClient(fetcher, settings["base_url"], settings["api_key"])
    walker = TreeWalker(
        client,
        ContentAddressedDownloader(fetcher),
        page_retry_limit=settings["page_retry_limit"],
        page_retry_delay=settings["page_retry_delay"],
        progress=args.progress,
    )
    logger.info("Mirroring node %s into %s", settings["node_id"], os.path.abspath(outdir))
    stats = walker.mirror(settings["node_id"], outdir)
    logger.info("Done: %s", stats.summary())
    return 1 if (stats.images_failed or stats.incomplete_nodes) else 0


if __name__ == "__main__":
    raise SystemExit(main())
