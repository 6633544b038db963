"""Chapter crawling subsystem.

Structure:
- base.py: chapter type, status transitions, title sanitizing and path composition
- controller.py: the paced, cancellable crawl loop (one chapter per tick)
- runner.py: small CLI entrypoint for headless crawls and for serving the API

The provider and the store are passed into the controller, so either can be
replaced (e.g. by fakes in tests) without touching the loop.
"""

__all__ = [
    "base",
    "controller",
]
