import os
import re
import json
import shutil
import logging
import time
from collections import OrderedDict
from datetime import datetime

import csscompressor
import rjsmin

from .extract import (
    PAGE_SCRIPTS_TOKEN,
    extract_global_styles,
    find_elements,
    is_plain_script,
    resolve_page,
)
from .settings import DEFAULT_ASSETS

# Placeholder tokens in template and fragment text
TOKEN_RE = re.compile(r'\{\{[A-Z0-9_]+\}\}')


class PagesmithError(Exception):
    """Base class for build errors."""


class ConfigError(PagesmithError):
    """The page configuration is missing or malformed. Aborts the build."""


class TemplateNotFoundError(PagesmithError):
    """A page template could not be read. Skips that page."""


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno != logging.INFO:
            return True
        allowed_messages = [
            "Starting build",
            "Building ",
            "Site build completed in",
            "Total pages generated:",
            "Total pages failed:",
            "Total assets copied:",
            "Watching ",
            "Change detected",
            "Stopping watcher",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


def setup_logging(verbose=False, log_dir=None):
    """Set up logging configuration for the Pagesmith logger tree."""
    logger = logging.getLogger('Pagesmith')
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        if not verbose:
            console_handler.addFilter(InfoFilter())
        console_handler.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(console_handler)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            log_filename = datetime.now().strftime('pagesmith_%Y-%m-%d_%H-%M-%S.log')
            file_handler = logging.FileHandler(os.path.join(log_dir, log_filename))
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            )
            logger.addHandler(file_handler)
            logger.setLevel(logging.DEBUG)

    return logger


class PageConfig:
    """One entry of pages.json."""

    def __init__(self, key, template, title='', description='', og_image=''):
        self.key = key
        self.template = template
        self.title = title
        self.description = description
        self.og_image = og_image

    def __repr__(self):
        return f"PageConfig({self.key!r}, template={self.template!r})"


def load_pages_config(config_path):
    """Load the page configuration document.

    Returns:
        OrderedDict of page key to PageConfig, in document order.

    Raises:
        ConfigError: if the document is missing, is not valid JSON, or an
            entry has no template.
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            raw = json.load(f, object_pairs_hook=OrderedDict)
    except FileNotFoundError:
        raise ConfigError(f"Page configuration not found: {config_path}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in page configuration {config_path}: {e}")
    except UnicodeDecodeError as e:
        raise ConfigError(f"Invalid encoding in page configuration {config_path}: {e}")
    except (IOError, OSError) as e:
        raise ConfigError(f"Error reading page configuration {config_path}: {e}")

    if not isinstance(raw, dict):
        raise ConfigError(f"Page configuration {config_path} must be an object of pages")

    pages = OrderedDict()
    for key, entry in raw.items():
        if not isinstance(entry, dict) or not isinstance(entry.get('template'), str):
            raise ConfigError(f"Page '{key}' in {config_path} has no template")
        pages[key] = PageConfig(
            key=key,
            template=entry['template'],
            title=entry.get('title') or '',
            description=entry.get('description') or '',
            og_image=entry.get('ogImage') or '',
        )
    return pages


class SourceCache:
    """Text of every file read during one build, keyed by absolute path.

    Each build owns a fresh cache so that a rebuild never sees content
    cached by an earlier one.
    """

    def __init__(self):
        self._entries = {}
        self._failures = {}
        self.reads = 0

    def read(self, path):
        """Return the file's text, re-raising a failure seen earlier in the build."""
        key = os.path.abspath(path)
        if key in self._failures:
            raise self._failures[key]
        if key not in self._entries:
            self.reads += 1
            try:
                with open(key, 'r', encoding='utf-8') as f:
                    self._entries[key] = f.read()
            except (OSError, UnicodeDecodeError) as e:
                self._failures[key] = e
                raise
        return self._entries[key]

    def failed(self, path):
        return os.path.abspath(path) in self._failures

    def __contains__(self, path):
        return os.path.abspath(path) in self._entries

    def __len__(self):
        return len(self._entries)


class FragmentLoader:
    """Read shared components and legacy documents through a SourceCache."""

    def __init__(self, components_dir, cache, strict=False):
        self.components_dir = components_dir
        self.cache = cache
        self.strict = strict
        self.logger = logging.getLogger('Pagesmith')

    def read(self, path):
        """Return a file's text; in lenient mode a read failure yields ''.

        The warning is logged once per build; later reads of the same
        file reuse the cached failure.
        """
        already_failed = self.cache.failed(path)
        try:
            return self.cache.read(path)
        except (OSError, UnicodeDecodeError) as e:
            if self.strict:
                raise
            if not already_failed:
                self.logger.warning(f"Could not read {path}: {e}")
            return ''

    def load(self, name):
        return self.read(os.path.join(self.components_dir, name))


def substitute(text, replacements):
    """Replace every occurrence of every token in a single pass.

    Mapped tokens are matched literally; any other ``{{TOKEN}}`` in
    ``text`` is dropped. Inserted content is never scanned again, so a
    title holding ``{{PAGE_DESCRIPTION}}`` or legacy markup holding
    ``{{X}}`` comes through verbatim.
    """
    literals = sorted(replacements, key=len, reverse=True)
    pattern = '|'.join([re.escape(token) for token in literals] + [TOKEN_RE.pattern])
    return re.sub(pattern, lambda match: replacements.get(match.group(0)) or '', text)


class TemplateComposer:
    """Load page templates and fill their placeholder tokens."""

    def __init__(self, templates_dir, cache):
        self.templates_dir = templates_dir
        self.cache = cache

    def load_template(self, template_name):
        path = os.path.join(self.templates_dir, template_name)
        try:
            return self.cache.read(path)
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateNotFoundError(f"Template {template_name} not found: {e}")

    def compose(self, template_name, replacements):
        return substitute(self.load_template(template_name), replacements)


class OutputWriter:
    """Own the output tree: reset it, write pages, copy assets."""

    def __init__(self, output_dir, root_dir='.', protected=()):
        self.output_dir = output_dir
        self.root_dir = root_dir
        self.protected = list(protected)
        self.logger = logging.getLogger('Pagesmith')

    def check_output_dir(self):
        """Refuse an output tree that would take project inputs with it.

        Raises:
            ConfigError: the output directory is the project root or one of
                its ancestors, or contains a protected path.
        """
        output = os.path.realpath(self.output_dir)
        for path in [self.root_dir] + self.protected:
            target = os.path.realpath(path)
            if os.path.commonpath([output, target]) == output:
                raise ConfigError(f"Output directory {self.output_dir} would delete {path}")

    def reset(self):
        """Remove the whole output tree and recreate it empty."""
        self.check_output_dir()
        if os.path.exists(self.output_dir):
            shutil.rmtree(self.output_dir)
        os.makedirs(self.output_dir, exist_ok=True)

    def write_page(self, page_key, html):
        output_path = os.path.join(self.output_dir, page_key)
        os.makedirs(os.path.dirname(output_path), exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(html)
        return output_path

    def copy_assets(self, asset_files):
        """Copy each listed asset that exists. Returns the names copied."""
        copied = []
        for name in asset_files:
            source = os.path.join(self.root_dir, name)
            if not os.path.isfile(source):
                self.logger.debug(f"Skipping missing asset: {name}")
                continue
            destination = os.path.join(self.output_dir, name)
            try:
                os.makedirs(os.path.dirname(destination), exist_ok=True)
                shutil.copy2(source, destination)
                copied.append(name)
                self.logger.debug(f"Copied asset: {name}")
            except (IOError, OSError, PermissionError) as e:
                self.logger.error(f"Failed to copy asset {name}: {e}")
        return copied


class BuildResult:
    """Outcome of one build invocation."""

    def __init__(self):
        self.pages_generated = []
        self.pages_failed = OrderedDict()
        self.assets_copied = []
        self.elapsed = 0.0

    @property
    def ok(self):
        """False only when pages were configured and none of them built."""
        return bool(self.pages_generated) or not self.pages_failed


class PageBuilder:
    def __init__(self, root_dir='.', src_dir='src', output_dir='dist', config_path=None,
                 index_document='index.html', stats_document='stats.html', assets=None,
                 site_url=None, minify=False, strict=False):
        self.root_dir = root_dir
        self.src_dir = self._resolve(src_dir)
        self.output_dir = self._resolve(output_dir)
        self.components_dir = os.path.join(self.src_dir, 'components')
        self.templates_dir = os.path.join(self.src_dir, 'templates')
        self.config_path = self._resolve(config_path) if config_path else \
            os.path.join(self.src_dir, 'config', 'pages.json')
        self.documents = {
            'index': self._resolve(index_document),
            'stats': self._resolve(stats_document),
        }
        self.assets = list(DEFAULT_ASSETS if assets is None else assets)
        self.site_url = site_url.rstrip('/') if site_url else None
        self.minify = minify
        self.strict = strict
        self.logger = logging.getLogger('Pagesmith')

    def _resolve(self, path):
        return path if os.path.isabs(path) else os.path.join(self.root_dir, path)

    def page_url(self, page_key):
        if self.site_url:
            return f"{self.site_url}/{page_key}"
        return page_key

    def minify_styles(self, css):
        return csscompressor.compress(css) if self.minify and css else css

    def minify_scripts(self, scripts):
        """Minify the inline classic scripts; other script types are kept."""
        if not self.minify or not scripts:
            return scripts
        parts = []
        pos = 0
        for element in find_elements(scripts, 'script', is_plain_script):
            parts.append(scripts[pos:element.inner_start])
            parts.append(rjsmin.jsmin(element.inner(scripts)))
            pos = element.inner_end
        parts.append(scripts[pos:])
        return ''.join(parts)

    def build_replacements(self, page, loader):
        """Assemble the outer token mapping for one page."""
        parts = resolve_page(page.key, loader.read, self.documents)
        global_styles = extract_global_styles(loader.read(self.documents['index']),
                                              self.documents['index'])

        head = substitute(loader.load('head-seo.html'), OrderedDict([
            ('{{PAGE_TITLE}}', page.title),
            ('{{PAGE_DESCRIPTION}}', page.description),
            ('{{PAGE_OG_IMAGE}}', page.og_image),
            ('{{PAGE_URL}}', self.page_url(page.key)),
        ]))
        footer = substitute(loader.load('footer.html'), {
            '{{FOOTER_EXTRA_LINKS}}': parts.footer_extra_links,
        })

        page_scripts = self.minify_scripts(parts.page_scripts)
        # Legacy content marks where its own script went; only that slot is filled
        content = parts.content.replace(PAGE_SCRIPTS_TOKEN, page_scripts)

        return OrderedDict([
            ('{{HEAD_SEO}}', head),
            ('{{NAV_COMPONENT}}', loader.load('nav.html')),
            ('{{DECORATIONS_COMPONENT}}', loader.load('decorations.html')),
            ('{{PAGE_CONTENT}}', content),
            ('{{FOOTER_COMPONENT}}', footer),
            ('{{MODAL_MENTIONS}}', loader.load('modal-mentions.html')),
            ('{{EXTERNAL_SCRIPTS}}', parts.external_scripts),
            ('{{GLOBAL_STYLES}}', self.minify_styles(global_styles)),
            ('{{PAGE_SCRIPTS}}', page_scripts),
        ])

    def build_page(self, page, composer, loader, writer):
        """Compose one page and write it. Errors propagate to the caller."""
        self.logger.info(f"Building {page.key}...")
        replacements = self.build_replacements(page, loader)
        html = composer.compose(page.template, replacements)
        path = writer.write_page(page.key, html)
        self.logger.debug(f"Wrote {path}")
        return path

    def build(self):
        """Main build process.

        Raises:
            ConfigError: the page configuration cannot be loaded. Nothing
                has been written to the output directory in that case.
        """
        start_time = time.time()
        self.logger.info("Starting build...")

        pages = load_pages_config(self.config_path)

        cache = SourceCache()
        loader = FragmentLoader(self.components_dir, cache, strict=self.strict)
        composer = TemplateComposer(self.templates_dir, cache)
        writer = OutputWriter(self.output_dir, self.root_dir,
                              protected=[self.src_dir, self.config_path] + list(self.documents.values()))
        writer.reset()

        result = BuildResult()
        for page_key, page in pages.items():
            try:
                self.build_page(page, composer, loader, writer)
                result.pages_generated.append(page_key)
            except Exception as e:
                self.logger.error(f"Failed to build {page_key}: {e}")
                result.pages_failed[page_key] = str(e)

        result.assets_copied = writer.copy_assets(self.assets)

        result.elapsed = time.time() - start_time
        self.logger.info(f"Site build completed in {result.elapsed:.6f} seconds.")
        self.logger.info(f"Total pages generated: {len(result.pages_generated)}")
        if result.pages_failed:
            self.logger.info(f"Total pages failed: {len(result.pages_failed)}")
        self.logger.info(f"Total assets copied: {len(result.assets_copied)}")
        return result
