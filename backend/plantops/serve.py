"""Run the plantops API under uvicorn.

TLS terminates at the reverse proxy; this process only speaks HTTP.
"""

import argparse
import logging
import os

import uvicorn

logger = logging.getLogger("plantops.serve")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the plantops inventory API.")
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    parser.add_argument("--workers", type=int, default=int(os.getenv("WEB_CONCURRENCY", "1")))
    parser.add_argument("--reload", action="store_true", default=_env_flag("RELOAD"))
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "info"))
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = _parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # Each worker process runs its own notification dispatcher thread.
    workers = 1 if args.reload else max(args.workers, 1)
    logger.info("Starting plantops API", extra={"host": args.host, "port": args.port, "workers": workers})

    uvicorn.run(
        "plantops.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=workers,
        log_level=args.log_level.lower(),
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "*"),
    )


if __name__ == "__main__":
    main()
