"""Tests for placeholder substitution and the template composer."""

import os
import sys
from collections import OrderedDict
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from pagesmith_pkg.core import (
    FragmentLoader,
    SourceCache,
    TemplateComposer,
    TemplateNotFoundError,
    substitute,
)


class TestSubstitute:
    """Test cases for the substitute function."""

    def test_replaces_every_occurrence(self):
        """Test that a token used several times is replaced everywhere."""
        text = '<h1>{{PAGE_TITLE}}</h1><title>{{PAGE_TITLE}}</title>{{PAGE_TITLE}}'
        result = substitute(text, {'{{PAGE_TITLE}}': 'Hello'})
        assert result == '<h1>Hello</h1><title>Hello</title>Hello'

    def test_unknown_token_removed(self):
        """Test that a token without a mapping disappears silently."""
        result = substitute('a{{UNKNOWN_TOKEN}}b', {'{{PAGE_TITLE}}': 'x'})
        assert result == 'ab'

    def test_none_mapping_becomes_empty(self):
        """Test that a None mapping is replaced with the empty string."""
        result = substitute('[{{PAGE_SCRIPTS}}]', {'{{PAGE_SCRIPTS}}': None})
        assert result == '[]'

    def test_tokens_match_literally(self):
        """Test that regex metacharacters in tokens are not interpreted."""
        result = substitute('a.b axb', {'a.b': 'DOT'})
        assert result == 'DOT axb'

    def test_content_with_backreferences_kept_verbatim(self):
        """Test that replacement content is inserted without escaping rules."""
        content = r'price: $1 \1 \g<0>'
        result = substitute('<p>{{PAGE_CONTENT}}</p>', {'{{PAGE_CONTENT}}': content})
        assert result == '<p>' + content + '</p>'

    def test_inserted_content_not_rescanned(self):
        """Test that a token carried by replacement content is left as is."""
        replacements = OrderedDict([
            ('{{PAGE_CONTENT}}', '<main>{{PAGE_SCRIPTS}}</main>'),
            ('{{PAGE_SCRIPTS}}', '<script>go()</script>'),
        ])
        result = substitute('{{PAGE_CONTENT}}', replacements)
        assert result == '<main>{{PAGE_SCRIPTS}}</main>'

    def test_title_holding_token_kept_literal(self):
        """Test that a title spelling another token is not expanded."""
        replacements = OrderedDict([
            ('{{PAGE_TITLE}}', 'About {{PAGE_DESCRIPTION}}'),
            ('{{PAGE_DESCRIPTION}}', 'secret'),
        ])
        result = substitute('<title>{{PAGE_TITLE}}</title><p>{{PAGE_DESCRIPTION}}</p>', replacements)
        assert result == '<title>About {{PAGE_DESCRIPTION}}</title><p>secret</p>'

    def test_unknown_token_in_content_survives(self):
        """Test that only the template's own unknown tokens are dropped."""
        result = substitute('{{PAGE_CONTENT}}{{LEFTOVER}}', {'{{PAGE_CONTENT}}': '<p>{{LEGACY_X}}</p>'})
        assert result == '<p>{{LEGACY_X}}</p>'

    def test_jsx_double_braces_untouched(self):
        """Test that inline JSX object literals are not mistaken for tokens."""
        text = "<div style={{color: 'red'}}></div>"
        assert substitute(text, {}) == text


class TestTemplateComposer:
    """Test cases for TemplateComposer."""

    def test_compose(self, temp_dir):
        """Test composing a template from disk."""
        templates = Path(temp_dir)
        (templates / 't.html').write_text('<head>{{HEAD_SEO}}</head>{{HEAD_SEO}}', encoding='utf-8')
        composer = TemplateComposer(str(templates), SourceCache())

        result = composer.compose('t.html', {'{{HEAD_SEO}}': '<title>x</title>'})

        assert result == '<head><title>x</title></head><title>x</title>'

    def test_missing_template_raises(self, temp_dir):
        """Test that a missing template raises TemplateNotFoundError."""
        composer = TemplateComposer(temp_dir, SourceCache())
        with pytest.raises(TemplateNotFoundError, match='missing.html'):
            composer.compose('missing.html', {})


class TestFragmentLoader:
    """Test cases for FragmentLoader and SourceCache."""

    def test_fragment_read_once_per_cache(self, temp_dir):
        """Test that repeated loads hit the cache."""
        fragment = Path(temp_dir) / 'nav.html'
        fragment.write_text('<nav>v1</nav>', encoding='utf-8')
        cache = SourceCache()
        loader = FragmentLoader(temp_dir, cache)

        assert loader.load('nav.html') == '<nav>v1</nav>'
        fragment.write_text('<nav>v2</nav>', encoding='utf-8')
        assert loader.load('nav.html') == '<nav>v1</nav>'
        assert cache.reads == 1

    def test_new_cache_sees_changes(self, temp_dir):
        """Test that a fresh cache re-reads changed fragments."""
        fragment = Path(temp_dir) / 'nav.html'
        fragment.write_text('<nav>v1</nav>', encoding='utf-8')
        FragmentLoader(temp_dir, SourceCache()).load('nav.html')
        fragment.write_text('<nav>v2</nav>', encoding='utf-8')

        assert FragmentLoader(temp_dir, SourceCache()).load('nav.html') == '<nav>v2</nav>'

    def test_missing_fragment_lenient(self, temp_dir, caplog):
        """Test that a missing fragment yields '' and a warning."""
        loader = FragmentLoader(temp_dir, SourceCache())
        assert loader.load('footer.html') == ''
        assert 'footer.html' in caplog.text

    def test_missing_fragment_strict(self, temp_dir):
        """Test that strict mode propagates the read error."""
        loader = FragmentLoader(temp_dir, SourceCache(), strict=True)
        with pytest.raises(OSError):
            loader.load('footer.html')

    def test_missing_fragment_warns_once(self, temp_dir, caplog):
        """Test that a failed read is cached and reported a single time."""
        cache = SourceCache()
        loader = FragmentLoader(temp_dir, cache)

        for _ in range(3):
            assert loader.load('footer.html') == ''

        warnings = [r for r in caplog.records if 'footer.html' in r.getMessage()]
        assert len(warnings) == 1
        assert cache.reads == 1
        assert cache.failed(os.path.join(temp_dir, 'footer.html'))

    def test_undecodable_fragment_lenient(self, temp_dir, caplog):
        """Test that a fragment that is not UTF-8 is treated as unreadable."""
        Path(temp_dir, 'nav.html').write_bytes(b'<nav>Acc\xe8s</nav>')
        loader = FragmentLoader(temp_dir, SourceCache())
        assert loader.load('nav.html') == ''
        assert 'nav.html' in caplog.text
