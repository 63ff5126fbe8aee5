"""Entry point: delegates to the CLI app (``mailfiler`` script or ``python -m mailfiler``)."""

from rich.traceback import install

from mailfiler.cli import app
from mailfiler.utils.tracing import shutdown_tracing


def main() -> None:
    try:
        install(show_locals=False, max_frames=5, word_wrap=True)
        app()
    finally:
        shutdown_tracing()


if __name__ == "__main__":
    main()
