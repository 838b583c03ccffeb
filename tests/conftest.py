"""Test configuration and fixtures for Pagesmith tests."""

import json
import logging
import shutil
import tempfile
from pathlib import Path

import pytest

HEAD_SEO = """<title>{{PAGE_TITLE}}</title>
<meta name="description" content="{{PAGE_DESCRIPTION}}">
<meta property="og:image" content="{{PAGE_OG_IMAGE}}">
<link rel="canonical" href="{{PAGE_URL}}">"""

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
{{HEAD_SEO}}
<style>{{GLOBAL_STYLES}}</style>
{{EXTERNAL_SCRIPTS}}
</head>
<body>
{{NAV_COMPONENT}}
{{DECORATIONS_COMPONENT}}
<main>{{PAGE_CONTENT}}</main>
{{FOOTER_COMPONENT}}
{{MODAL_MENTIONS}}
</body>
</html>
"""

LEGACY_INDEX = """<!DOCTYPE html>
<html>
<head>
<style>
body { color: red; }
</style>
</head>
<body>
<nav><a href="/">Old nav</a></nav>
<!-- Decorative Elements -->
<div class="decoration-1"></div>
<div class="decoration-2"></div>
<section class="hero">Bienvenue</section>
<footer>Old footer</footer>
<!-- Modal Mentions Légales -->
<div id="mentions" class="modal">
    <div class="modal-content">Mentions</div>
</div>
<script>
console.log("home");
</script>
</body>
</html>
"""

LEGACY_STATS = """<!DOCTYPE html>
<html>
<head></head>
<body>
<div id="root"></div>
<script type="text/babel">
const App = () => <div>Stats</div>;
</script>
<p class="legacy-note">Donnees</p>
</body>
</html>
"""

PAGES = {
    "index.html": {
        "template": "page.html",
        "title": "Accueil",
        "description": "Page d'accueil",
        "ogImage": "/logo.png",
    },
    "stats.html": {
        "template": "page.html",
        "title": "Statistiques",
        "description": "Chiffres",
        "ogImage": "/stats.png",
    },
    "about.html": {
        "template": "page.html",
        "title": "Hello",
        "description": "World",
        "ogImage": "/img.png",
    },
}


@pytest.fixture(autouse=True)
def reset_pagesmith_logger():
    """Drop console handlers installed by CLI tests."""
    yield
    logger = logging.getLogger('Pagesmith')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


def write_pages(project, pages):
    path = Path(project) / 'src' / 'config' / 'pages.json'
    path.write_text(json.dumps(pages, indent=2), encoding='utf-8')
    return path


@pytest.fixture
def mock_project(temp_dir):
    """Create a project tree with components, templates, config and legacy pages."""
    root = Path(temp_dir) / 'site'
    components = root / 'src' / 'components'
    templates = root / 'src' / 'templates'
    config = root / 'src' / 'config'
    for directory in (components, templates, config):
        directory.mkdir(parents=True)

    (components / 'head-seo.html').write_text(HEAD_SEO, encoding='utf-8')
    (components / 'nav.html').write_text('<nav class="main-nav">NAV</nav>', encoding='utf-8')
    (components / 'decorations.html').write_text('<div class="decoration-1"></div>', encoding='utf-8')
    (components / 'footer.html').write_text('<footer>FOOTER{{FOOTER_EXTRA_LINKS}}</footer>', encoding='utf-8')
    (components / 'modal-mentions.html').write_text('<div id="modal">MODAL</div>', encoding='utf-8')
    (templates / 'page.html').write_text(PAGE_TEMPLATE, encoding='utf-8')

    (root / 'index.html').write_text(LEGACY_INDEX, encoding='utf-8')
    (root / 'stats.html').write_text(LEGACY_STATS, encoding='utf-8')
    (root / 'favicon.ico').write_bytes(b'\x00\x00\x01\x00')

    write_pages(root, PAGES)
    return str(root)


@pytest.fixture
def output_dir(mock_project):
    return str(Path(mock_project) / 'dist')
