"""
Content extraction from the hand-written legacy pages.

The legacy ``index.html`` and ``stats.html`` predate the component build.
Their inline styles, body markup and scripts are mined here with a small
tag-boundary scanner, so attribute order or stray whitespace inside a tag
does not defeat the match. Nothing here parses the DOM: elements are
delimited by their first matching closing tag.
"""

import logging
import re

logger = logging.getLogger('Pagesmith.extract')

PAGE_SCRIPTS_TOKEN = '{{PAGE_SCRIPTS}}'

_ATTR_RE = re.compile(r'''([^\s=/>]+)(?:\s*=\s*("[^"]*"|'[^']*'|[^\s>]+))?''')

# Comment-anchored blocks with no single enclosing element
DECORATIONS_RE = re.compile(
    r'<!--\s*Decorative Elements\s*-->.*?<div\s+class="decoration-2"\s*>\s*</div>',
    re.S,
)
MODAL_RE = re.compile(r'<!--\s*Modal Mentions Légales\s*-->.*?</div>\s*</div>', re.S)

STATS_EXTERNAL_SCRIPTS = """
    <script src="https://unpkg.com/react@18/umd/react.production.min.js"></script>
    <script src="https://unpkg.com/react-dom@18/umd/react-dom.production.min.js"></script>
    <script src="https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.js"></script>
    <script src="https://unpkg.com/@babel/standalone/babel.min.js"></script>
    <script src="https://cdn.jsdelivr.net/npm/@supabase/supabase-js@2"></script>
"""

STATS_HEADER = """
    <div class="main-container">
        <div class="page-header">
            <h1>Statistiques en temps réel</h1>
            <p>Découvrez l'activité de la communauté Mapikids</p>
        </div>
    </div>
    <div id="root"></div>
"""

STATS_FOOTER_LINKS = """
    <span style="margin: 0 0.5rem;">|</span>
    <a href="/">← Retour à l'accueil</a>
"""

DEFAULT_CONTENT = '<div class="main-container"><p>Contenu de {page_key} sera ajouté ici</p></div>'


class Element:
    """Offsets of one element found in a markup string."""

    def __init__(self, start, end, inner_start, inner_end, attrs):
        self.start = start
        self.end = end
        self.inner_start = inner_start
        self.inner_end = inner_end
        self.attrs = attrs

    def inner(self, markup):
        return markup[self.inner_start:self.inner_end]

    def outer(self, markup):
        return markup[self.start:self.end]


def parse_attrs(raw):
    """Parse the attribute text of an opening tag into a dict."""
    attrs = {}
    for match in _ATTR_RE.finditer(raw):
        value = match.group(2)
        if value is None:
            value = ''
        elif value[:1] in ('"', "'"):
            value = value[1:-1]
        attrs[match.group(1).lower()] = value
    return attrs


def find_elements(markup, tag, predicate=None, start=0):
    """Yield each ``<tag>...</tag>`` element in document order.

    ``predicate`` receives the parsed attributes of the opening tag and
    filters which elements are returned.
    """
    open_re = re.compile(r'<%s(\s[^>]*)?>' % re.escape(tag), re.I)
    close_re = re.compile(r'</%s\s*>' % re.escape(tag), re.I)
    pos = start
    while True:
        opening = open_re.search(markup, pos)
        if opening is None:
            return
        closing = close_re.search(markup, opening.end())
        if closing is None:
            return
        attrs = parse_attrs(opening.group(1) or '')
        if predicate is None or predicate(attrs):
            yield Element(opening.start(), closing.end(), opening.end(), closing.start(), attrs)
            pos = closing.end()
        else:
            pos = opening.end()


def find_element(markup, tag, predicate=None, start=0):
    """Return the first matching element, or None."""
    return next(find_elements(markup, tag, predicate, start), None)


def is_plain_script(attrs):
    """Inline classic script: no ``src`` and no non-JavaScript ``type``."""
    if 'src' in attrs:
        return False
    return attrs.get('type', 'text/javascript').lower() in ('', 'text/javascript', 'application/javascript')


def is_babel_script(attrs):
    return attrs.get('type', '').lower() == 'text/babel' and 'src' not in attrs


def _warn_missing(document, region):
    logger.warning(f"{document}: {region} not found, using empty content")


def remove_element(markup, tag, document, predicate=None):
    """Drop the first matching element, warning if there is none."""
    element = find_element(markup, tag, predicate)
    if element is None:
        _warn_missing(document, f"<{tag}>")
        return markup
    return markup[:element.start] + markup[element.end:]


def remove_pattern(markup, pattern, document, label):
    """Drop the first match of a comment-anchored pattern."""
    result, count = pattern.subn('', markup, count=1)
    if not count:
        _warn_missing(document, label)
    return result


def extract_global_styles(markup, document='index.html'):
    """Return the interior of the first ``<style>`` block, or ``''``."""
    element = find_element(markup, 'style')
    if element is None:
        _warn_missing(document, '<style> block')
        return ''
    return element.inner(markup)


class PageParts:
    """Page-specific pieces that feed the outer template tokens."""

    def __init__(self, content='', page_scripts='', external_scripts='', footer_extra_links=''):
        self.content = content
        self.page_scripts = page_scripts
        self.external_scripts = external_scripts
        self.footer_extra_links = footer_extra_links

    def __repr__(self):
        return f"PageParts(content={len(self.content)} chars, page_scripts={len(self.page_scripts)} chars)"


def resolve_index(read_document, documents):
    """Body of the legacy home page, stripped of the shared components."""
    name = documents['index']
    markup = read_document(name)
    body = find_element(markup, 'body')
    if body is None:
        _warn_missing(name, '<body> region')
        return PageParts()

    content = body.inner(markup)
    content = remove_element(content, 'nav', name)
    content = remove_pattern(content, DECORATIONS_RE, name, 'decorative elements')
    content = remove_element(content, 'footer', name)
    content = remove_pattern(content, MODAL_RE, name, 'legal notice modal')

    page_scripts = ''
    script = find_element(content, 'script', is_plain_script)
    if script is None:
        _warn_missing(name, '<script> block')
    else:
        page_scripts = f"<script>{script.inner(content)}</script>"
        content = content[:script.start] + PAGE_SCRIPTS_TOKEN + content[script.end:]

    return PageParts(content=content, page_scripts=page_scripts)


def resolve_stats(read_document, documents):
    """Fixed header plus the React mount point and trailing legacy markup."""
    name = documents['stats']
    markup = read_document(name)

    trailing = ''
    root = find_element(markup, 'div', lambda attrs: attrs.get('id') == 'root')
    if root is None:
        _warn_missing(name, '<div id="root"> marker')
    else:
        body_close = re.compile(r'</body\s*>', re.I).search(markup, root.end)
        if body_close is None:
            _warn_missing(name, '</body> after the root marker')
        else:
            trailing = markup[root.end:body_close.start()]

    page_scripts = ''
    babel = find_element(markup, 'script', is_babel_script)
    if babel is None:
        _warn_missing(name, 'text/babel script')
    else:
        page_scripts = f'<script type="text/babel">{babel.inner(markup)}</script>'
        inline = find_element(trailing, 'script', is_babel_script)
        if inline is not None:
            trailing = trailing[:inline.start] + PAGE_SCRIPTS_TOKEN + trailing[inline.end:]

    return PageParts(
        content=STATS_HEADER + trailing,
        page_scripts=page_scripts,
        external_scripts=STATS_EXTERNAL_SCRIPTS,
        footer_extra_links=STATS_FOOTER_LINKS,
    )


# Pages with bespoke content, keyed by output filename
PAGE_RESOLVERS = {
    'index.html': resolve_index,
    'stats.html': resolve_stats,
}


def resolve_page(page_key, read_document, documents):
    """Return the PageParts for a page.

    Args:
        page_key: Output filename of the page.
        read_document: Callable returning the text of a legacy document.
        documents: Mapping with ``index`` and ``stats`` legacy document paths.
    """
    resolver = PAGE_RESOLVERS.get(page_key)
    if resolver is None:
        return PageParts(content=DEFAULT_CONTENT.format(page_key=page_key))
    return resolver(read_document, documents)
