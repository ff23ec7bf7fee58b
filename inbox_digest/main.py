"""Entry point: delegates to CLI app (one module per mode)."""

from rich.traceback import install

from inbox_digest.cli import app
from inbox_digest.utils.tracing import shutdown_tracing


def run() -> None:
    try:
        install(show_locals=False, max_frames=5, word_wrap=True)
        app()
    finally:
        shutdown_tracing()


if __name__ == "__main__":
    run()
