# main.py
import argparse
import asyncio
import logging
import sys
from typing import List

from .constants import *
from .errors import SessionError
from .options import build_options, load_options
from .session import CaptureSession, SessionConfig
from .sink import DirectorySink


def read_urls(args) -> List[str]:
    urls = list(args.url or [])
    if args.urls_file:
        with open(args.urls_file, 'r', encoding='utf-8') as f:
            urls.extend(line.strip() for line in f if line.strip() and not line.startswith('#'))
    return list(dict.fromkeys(urls))


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Interactive screenshot capture for web pages')
    parser.add_argument('--url', action='append', help='Page URL to capture (repeatable)')
    parser.add_argument('--urls-file', help='File with one URL per line')
    parser.add_argument('--out', default='screenshots', help='Output directory')
    parser.add_argument('--config', help='YAML file with capture options')
    parser.add_argument('--headful', action='store_true', help='Show browser')
    parser.add_argument('--parallel', type=int, default=PARALLEL_TASKS, help='Pages captured in parallel')
    parser.add_argument('--max-interactions', type=int, help='Interaction budget per page')
    parser.add_argument('--max-screenshots', type=int, help='Screenshot budget per page')
    parser.add_argument('--no-consent', action='store_true', help='Do not dismiss cookie consent dialogs')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format='%(asctime)s %(levelname)-5s %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

    urls = read_urls(args)
    if not urls:
        parser.error('at least one --url or --urls-file is required')

    overrides = {
        'max_interactions': args.max_interactions,
        'max_screenshots': args.max_screenshots,
    }
    options = load_options(args.config, overrides) if args.config else build_options(overrides)

    config = SessionConfig(
        parallel_tasks=args.parallel,
        headless=not args.headful,
        dismiss_consent=not args.no_consent,
    )
    sink = DirectorySink(args.out)

    try:
        async with CaptureSession(options, sink, config) as session:
            results = await session.capture_all(urls)
    except SessionError as e:
        logger.error(str(e))
        return 2

    for result in results:
        if result.success:
            logger.info(f"OK   {result.url}: {len(result.files)} files")
        else:
            logger.info(f"FAIL {result.url}: {result.error}")
    return 0 if all(r.success for r in results) else 1


def run():
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
