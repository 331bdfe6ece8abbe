import argparse
import logging
import sys


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("llama_index").setLevel(logging.WARNING)
    logging.getLogger("backoff").setLevel(logging.ERROR)
    logging.getLogger("uvicorn").setLevel(logging.INFO)


logger = logging.getLogger(__name__)


def main():
    """Main entry point for cloneplan."""
    parser = argparse.ArgumentParser(description="cloneplan - Business Cloning Analysis API")
    parser.add_argument(
        "--port",
        type=int,
        default=9010,
        help="Port for the API server"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Run in debug mode (internal error messages in responses)"
    )
    args = parser.parse_args()

    setup_logging(args.log_level)

    # Initialize settings
    from .setting import get_settings
    settings = get_settings()
    if args.debug:
        settings = settings.model_copy(update={"debug": True})
    logger.info(
        f"Starting cloneplan - primary={settings.primary.provider}:{settings.primary.model} "
        f"secondary={settings.secondary.provider}:{settings.secondary.model} "
        f"tech_detection={settings.enable_tech_detection}"
    )

    from .core.orchestrator import build_orchestrator
    from .core.providers import build_provider_chain
    from .core.storage import InMemoryAnalysisStore

    providers = build_provider_chain(settings)
    store = InMemoryAnalysisStore()
    orchestrator = build_orchestrator(settings, providers, store)

    # Build FastAPI app
    from .api.app import create_app
    app = create_app(orchestrator=orchestrator, store=store, settings=settings)

    # Launch with uvicorn
    import uvicorn

    logger.info(f"Starting FastAPI server on http://0.0.0.0:{args.port}")
    print(f"\n  cloneplan is running at: http://localhost:{args.port}")
    print(f"  API docs at: http://localhost:{args.port}/docs\n")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
