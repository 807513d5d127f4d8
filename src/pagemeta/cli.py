from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path

from pagemeta.settings import settings


def _configure_logging() -> None:
    import logging

    level = (settings.log_level or "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _is_url(s: str) -> bool:
    return s.startswith(("http://", "https://"))


async def _load_html(source: str) -> str:
    if _is_url(source):
        from pagemeta.http import HttpClientFactory

        async with HttpClientFactory.client() as client:
            r = await client.get(source)
            r.raise_for_status()
            return r.text
    with open(source, encoding="utf-8", errors="replace") as f:
        return f.read()


def _location(args: argparse.Namespace) -> str:
    if args.location:
        return args.location
    if _is_url(args.source):
        return args.source
    return Path(os.path.abspath(args.source)).as_uri()


def cmd_version() -> int:
    from pagemeta import __version__

    print(__version__)
    return 0


async def _prepare(args: argparse.Namespace) -> int:
    from pagemeta.document import Page
    from pagemeta.orchestrator import PagePreparer
    from pagemeta.rules import SiteRulesRegistry

    html = await _load_html(args.source)
    page = Page(html, _location(args))

    rules = None
    rules_path = args.rules or settings.rules_path
    if rules_path:
        rules = SiteRulesRegistry.load(rules_path).rules_for(page.location)

    async with PagePreparer(page) as preparer:
        ctx = await preparer.prepare_metadata(rules)

    main = ctx.main if ctx else None
    print(
        json.dumps(
            {
                "location": page.location,
                "site_rules": rules is not None,
                "subjects": len(ctx.graph.list_subjects()) if ctx and ctx.graph else 0,
                "elements": len(ctx.elements) if ctx else 0,
                "main": {
                    "subject": main.subject.id,
                    "element_id": main.id,
                    "selector": main.selector,
                }
                if main
                else None,
            },
            indent=2,
        )
    )

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(page.html)
    return 0


def cmd_prepare(args: argparse.Namespace) -> int:
    _configure_logging()
    return asyncio.run(_prepare(args))


def cmd_copy_image(args: argparse.Namespace) -> int:
    _configure_logging()
    from pagemeta.document import Page
    from pagemeta.persist import image_with_metadata

    with open(args.source, encoding="utf-8", errors="replace") as f:
        page = Page(f.read(), _location(args))

    node = page.query(args.selector)
    if node is None:
        raise SystemExit(f"no element matches {args.selector}")

    info = image_with_metadata(page, node)
    if info is None:
        raise SystemExit(f"no stored metadata on {args.selector}; run `pagemeta prepare` first")
    print(json.dumps(info, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pagemeta")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("version").set_defaults(func=lambda _a: cmd_version())

    prep = sub.add_parser("prepare", help="Resolve subjects and store metadata on the page")
    prep.add_argument("source", help="URL or HTML file")
    prep.add_argument("--location", default=None, help="Canonical location (defaults to the URL/file URI)")
    prep.add_argument("--rules", default=None, help="Site rules JSON keyed by hostname")
    prep.add_argument("--output", default=None, help="Write the annotated HTML here")
    prep.set_defaults(func=cmd_prepare)

    copy = sub.add_parser("copy-image", help="Show stored metadata for an element of an annotated page")
    copy.add_argument("source", help="Annotated HTML file")
    copy.add_argument("--selector", required=True)
    copy.add_argument("--location", default=None)
    copy.set_defaults(func=cmd_copy_image)

    return p


def app() -> None:
    parser = build_parser()
    args = parser.parse_args()
    rc = args.func(args)
    raise SystemExit(rc)


if __name__ == "__main__":
    app()
