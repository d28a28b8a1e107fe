#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Pedaru - PDF text-position core

Command line entry point for inspecting what the viewer's overlay and
selection components see in a PDF:

    python app.py context paper.pdf --page 3 --text "gradient" [--offset 120]
    python app.py search paper.pdf "attention"
    python app.py layout paper.pdf --page 1 [--scale 1.5]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from pedaru.config import ViewerSettings, get_default_settings_path
from pedaru.services.document_session import DocumentSession

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging to console and file for debugging.

    Log file location: ~/.pedaru/logs/pedaru.log (append mode, UTF-8)

    Returns:
        tuple: (console_handler, file_handler) to keep references alive
    """
    logs_dir = Path.home() / ".pedaru" / "logs"
    log_file_path = logs_dir / "pedaru.log"

    # Create console handler first (always works)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    ))

    # Try to create log directory
    file_handler = None
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        # Fall back to console-only logging if log directory cannot be created
        print(f"[WARNING] Failed to create log directory {logs_dir}: {e}", file=sys.stderr)
        logs_dir = None

    if logs_dir is not None:
        try:
            file_handler = logging.FileHandler(log_file_path, mode='a', encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
        except OSError as e:
            print(f"[WARNING] Failed to create log file {log_file_path}: {e}", file=sys.stderr)
            file_handler = None

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    # Remove existing handlers that might interfere
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(console_handler)
    if file_handler:
        root_logger.addHandler(file_handler)

    # pdfminer logs every operator at debug level
    logging.getLogger('pdfminer').setLevel(logging.WARNING)

    return console_handler, file_handler


def _open_document(path: Path):
    from pedaru.processors.pdf_document import PdfMinerDocument

    if not path.exists():
        raise SystemExit(f"PDF not found: {path}")
    try:
        return PdfMinerDocument.open(path)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc


async def _run_context(session: DocumentSession, args: argparse.Namespace) -> int:
    window = await session.extractor.extract_context(args.text.strip(), args.page, args.offset)
    print(f"--- before ({len(window.context_before)} chars) ---")
    print(window.context_before)
    print("--- selected ---")
    print(args.text.strip())
    print(f"--- after ({len(window.context_after)} chars) ---")
    print(window.context_after)
    return 0


async def _run_search(session: DocumentSession, args: argparse.Namespace) -> int:
    results = await session.search.search(args.query)
    for result in results:
        print(f"p.{result.page} #{result.match_index}: "
              f"...{result.context_before}[{result.match_text}]{result.context_after}...")
    print(f"{len(results)} matches")
    return 0 if results else 1


async def _run_layout(session: DocumentSession, args: argparse.Namespace) -> int:
    # No font delivery on the command line; substitute metrics are final
    session.measurer.mark_fonts_loaded()
    layer = await session.render_page(args.page, args.scale)
    if layer is None:
        print(f"Page {args.page} could not be laid out", file=sys.stderr)
        return 1
    await session.wait_width_corrections()

    if args.html:
        from pedaru.ui.text_layer_markup import render_text_layer_html
        print(render_text_layer_html(layer, args.highlight))
        return 0

    print(f"Page {layer.page_number}: {layer.viewport.width:.1f} x {layer.viewport.height:.1f} px "
          f"@ {layer.viewport.scale}")
    for span in layer.sorted_spans():
        print(f"[{span.index:4d}] x={span.origin_x:8.2f} y={span.origin_y:8.2f} "
              f"size={span.font_size_px:6.2f} rot={span.rotation_radians:+.3f} "
              f"w={span.target_width_px:8.2f} sx={span.width_correction_factor:.3f} "
              f"{span.text!r}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pedaru PDF text-position tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to the console")
    parser.add_argument("--settings", type=Path, default=None, help="Settings file (config/settings.json)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    context = subparsers.add_parser("context", help="Print the context window of a selection")
    context.add_argument("pdf", type=Path)
    context.add_argument("--page", type=int, required=True, help="1-based page of the selection")
    context.add_argument("--text", required=True, help="Selected text")
    context.add_argument("--offset", type=int, default=-1, help="Offset hint within the page (-1 = unknown)")

    search = subparsers.add_parser("search", help="Search every page")
    search.add_argument("pdf", type=Path)
    search.add_argument("query")

    layout = subparsers.add_parser("layout", help="Print the positioned overlay spans of a page")
    layout.add_argument("pdf", type=Path)
    layout.add_argument("--page", type=int, required=True)
    layout.add_argument("--scale", type=float, default=None)
    layout.add_argument("--html", action="store_true", help="Print overlay markup instead")
    layout.add_argument("--highlight", default=None, help="Query highlighted in --html output")

    return parser


_COMMANDS = {
    "context": _run_context,
    "search": _run_search,
    "layout": _run_layout,
}


async def _run(args: argparse.Namespace, document) -> int:
    settings = ViewerSettings.load(args.settings or get_default_settings_path())
    session = DocumentSession(settings)
    session.open_document(document)
    try:
        return await _COMMANDS[args.command](session, args)
    finally:
        session.close_document()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    logger.debug("Running %s on %s", args.command, args.pdf)
    with _open_document(args.pdf) as document:
        return asyncio.run(_run(args, document))


if __name__ == '__main__':
    sys.exit(main())
