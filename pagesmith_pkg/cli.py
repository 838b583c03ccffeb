#!/usr/bin/env python3
"""
Command-line interface for Pagesmith - component-based static page builder.
"""

import os
import sys
import argparse
from typing import List, Optional

from . import __version__
from .core import PageBuilder, PagesmithError, setup_logging
from .settings import PagesmithSettings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Pagesmith - Component-based static page builder')
    parser.add_argument('--root', type=str, default=None,
                        help='Project root holding the legacy pages, assets and settings file')
    parser.add_argument('--src', type=str,
                        help='Source directory with components/, templates/ and config/')
    parser.add_argument('--output', type=str,
                        help='Output directory (cleared on every build)')
    parser.add_argument('--config', type=str,
                        help='Page configuration JSON (default: <src>/config/pages.json)')
    parser.add_argument('--assets', type=str,
                        help='Comma-separated list of asset files to copy')
    parser.add_argument('--site-url', type=str,
                        help='Prefix for the canonical page URL')
    parser.add_argument('--watch', action='store_true',
                        help='Watch for file changes and rebuild')
    parser.add_argument('--minify', action='store_true',
                        help='Minify inline styles and classic scripts')
    parser.add_argument('--strict', action='store_true',
                        help='Fail a page when one of its components cannot be read')
    parser.add_argument('--verbose', action='store_true',
                        help='Show debug output on the console')
    parser.add_argument('--log-dir', type=str,
                        help='Also write a timestamped debug log into this directory')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def create_builder(settings, root_dir: str) -> PageBuilder:
    return PageBuilder(
        root_dir=root_dir,
        src_dir=settings['src'],
        output_dir=settings['output'],
        config_path=settings['config'],
        index_document=settings['index_document'],
        stats_document=settings['stats_document'],
        assets=settings['assets'],
        site_url=settings['site_url'],
        minify=settings['minify'],
        strict=settings['strict'],
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    root_dir = os.path.abspath(os.path.expanduser(args.root or os.getcwd()))
    settings_loader = PagesmithSettings(root_dir)

    if args.init:
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")
        return

    settings_loader.load_settings()

    # Command line arguments take precedence over the settings file
    args_dict = {k: v for k, v in vars(args).items() if v is not None and k not in ('root', 'init')}
    final_settings = settings_loader.merge_with_args(args_dict)

    logger = setup_logging(final_settings['verbose'], final_settings['log_dir'])
    if settings_loader.config_file_path and not settings_loader.warnings:
        logger.debug(f"Loaded configuration from: {os.path.relpath(settings_loader.config_file_path)}")
    for warning in settings_loader.warnings:
        logger.warning(f"Warning: {warning}")

    builder = create_builder(final_settings, root_dir)

    if final_settings['watch']:
        from .watcher import watch
        watch(builder)
        return

    try:
        result = builder.build()
    except PagesmithError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not result.ok:
        print(f"Error: no page could be built ({len(result.pages_failed)} failed)", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
