from __future__ import annotations

import logging
import sys
import threading
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Callable

from .cache import hash_paths, list_files
from .config import BuildContext
from .errors import SiteError

log = logging.getLogger(__name__)


class SourceWatcher:
    """Detects edits to posts, layouts, static files and the config file by
    fingerprinting their paths and contents."""

    def __init__(self, ctx: BuildContext):
        self.ctx = ctx
        self.fingerprint = self.compute()

    def watched_files(self) -> list[Path]:
        files = list_files(self.ctx.posts_dir, self.ctx.layouts_dir, self.ctx.static_dir)
        if self.ctx.config_path is not None and self.ctx.config_path.is_file():
            files.append(self.ctx.config_path)
        return files

    def compute(self) -> str:
        return hash_paths(self.watched_files(), self.ctx.source)

    def poll(self) -> bool:
        current = self.compute()
        changed = current != self.fingerprint
        self.fingerprint = current
        return changed


class QuietHandler(SimpleHTTPRequestHandler):
    def log_message(self, format, *args):
        log.debug("%s - %s", self.address_string(), format % args)


def rebuild(ctx: BuildContext, build: Callable[[BuildContext], object]) -> bool:
    try:
        build(ctx)
    except (SiteError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        print("Build failed; still serving the last good site.", file=sys.stderr)
        return False
    print(f"Site generated in: {ctx.output_dir}")
    return True


def watch(
    ctx: BuildContext,
    build: Callable[[BuildContext], object],
    stop: threading.Event,
    interval: float,
) -> None:
    watcher = SourceWatcher(ctx)
    while not stop.wait(interval):
        if watcher.poll():
            print("Change detected, rebuilding...")
            rebuild(ctx, build)


def make_server(ctx: BuildContext, host: str, port: int) -> ThreadingHTTPServer:
    handler = partial(QuietHandler, directory=str(ctx.output_dir))
    return ThreadingHTTPServer((host, port), handler)


def serve(
    ctx: BuildContext,
    host: str,
    port: int,
    interval: float,
    *,
    build: Callable[[BuildContext], object],
) -> int:
    rebuild(ctx, build)
    server = make_server(ctx, host, port)
    stop = threading.Event()
    watcher_thread = threading.Thread(target=watch, args=(ctx, build, stop, interval), daemon=True)
    watcher_thread.start()
    bound_host, bound_port = server.server_address[:2]
    print(f"Serving {ctx.output_dir} at http://{bound_host}:{bound_port}/ (Ctrl-C to stop)")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("Stopping.")
    finally:
        stop.set()
        server.server_close()
        watcher_thread.join(timeout=interval + 1)
    return 0
