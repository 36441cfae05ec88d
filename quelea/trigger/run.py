import argparse
import importlib
import logging
import uvicorn
from quelea.config import QueueSettings
from quelea.runtime import QueueRuntime
from quelea.trigger.api import create_app
from quelea.trigger.handler import log_payload
from quelea.worker.pipeline import Handler


def load_handler(path: str) -> Handler:
    """Resolves a 'package.module:function' reference."""
    module_name, _, attr = path.partition(":")
    if not attr:
        raise ValueError(f"Handler must look like 'module:function', got {path!r}")
    return getattr(importlib.import_module(module_name), attr)


def main():
    parser = argparse.ArgumentParser(description="Quelea HTTP trigger")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument(
        "--handler",
        default=None,
        help="Handler as module:function (defaults to logging each payload)",
    )
    parser.add_argument(
        "--transport",
        choices=["sqs", "memory"],
        default=None,
        help="Override the configured transport",
    )
    parser.add_argument("--log-level", default=None, help="Logging level")

    args = parser.parse_args()

    settings = QueueSettings()
    if args.transport:
        settings = settings.model_copy(update={"transport": args.transport})
    log_level = (args.log_level or settings.log_level).upper()

    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    handler = load_handler(args.handler) if args.handler else log_payload
    runtime = QueueRuntime.from_settings(settings)
    app = create_app(runtime, handler)

    print(f"Starting Quelea trigger on {args.host}:{args.port}...")
    uvicorn.run(app, host=args.host, port=args.port, log_level=log_level.lower())


if __name__ == "__main__":
    main()
