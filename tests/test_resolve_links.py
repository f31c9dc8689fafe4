#!/usr/bin/env python3
"""
Tests for twine_import/resolve_links.py
"""

import sys
from pathlib import Path

import pytest

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from twine_import.models import DestinationPassage
from twine_import.resolve_links import (
    count_conditional_links,
    extract_links,
    parse_link,
    resolve_links,
    strip_links,
)

NAMES = {'Start': 'id-start', 'Hall': 'id-hall', 'Cellar': 'id-cellar'}


def make_passage(content, title='Start'):
    return DestinationPassage(id='id-' + title.lower(), title=title, content=content)


def test_extract_links_all_formats_in_order():
    content = '[[Go->Hall]] then [[Cellar<-Down]] or [[Up|Hall]] or [[Start]]'

    assert extract_links(content) == [
        ('Go', 'Hall'),
        ('Down', 'Cellar'),
        ('Up', 'Hall'),
        ('Start', 'Start'),
    ]


def test_extract_links_keeps_repeats():
    assert extract_links('[[Hall]] [[Hall]]') == [('Hall', 'Hall'), ('Hall', 'Hall')]


def test_parse_link_uses_last_arrow():
    assert parse_link('A->B->Hall') == ('A->B', 'Hall')


def test_resolve_link_round_trip():
    """A [[text->target]] link becomes exactly one choice."""
    passage = make_passage('[[Click here->Hall]]')
    warnings = []

    resolve_links(passage, NAMES, warnings)

    assert len(passage.choices) == 1
    assert passage.choices[0].text == 'Click here'
    assert passage.choices[0].target_passage_id == 'id-hall'
    assert warnings == []


def test_resolve_broken_link():
    passage = make_passage('[[Nowhere]]')
    warnings = []

    resolve_links(passage, NAMES, warnings)

    assert passage.choices[0].target_passage_id is None
    assert warnings == ['Broken link: "Nowhere" in passage "Start"']


def test_resolve_is_case_sensitive():
    passage = make_passage('[[hall]]')
    warnings = []

    resolve_links(passage, NAMES, warnings)

    assert passage.choices[0].target_passage_id is None
    assert len(warnings) == 1


def test_resolve_multiple_links_left_to_right():
    passage = make_passage('[[North->Hall]]\n[[South->Cellar]]')

    resolve_links(passage, NAMES, [])

    assert [c.text for c in passage.choices] == ['North', 'South']
    assert [c.target_passage_id for c in passage.choices] == ['id-hall', 'id-cellar']
    assert len({c.id for c in passage.choices}) == 2


def test_resolve_passage_without_links():
    passage = make_passage('Nothing to see.')

    resolve_links(passage, NAMES, [])

    assert passage.choices == []
    assert passage.content == 'Nothing to see.'


class TestStripLinks:
    def test_link_only_lines_are_dropped(self):
        content = 'You see a door.\n\n[[Open it->Hall]]\n[[Leave]]'

        assert strip_links(content) == 'You see a door.'

    def test_inline_links_keep_display_text(self):
        assert strip_links('Go [[north->Hall]] now.') == 'Go north now.'

    def test_reverse_and_pipe_forms(self):
        assert strip_links('Take [[Cellar<-the stairs]] or [[the door|Hall]].') == \
            'Take the stairs or the door.'

    def test_blank_runs_are_collapsed(self):
        content = 'Top\n\n[[A]]\n\n[[B]]\n\nBottom'

        assert strip_links(content) == 'Top\n\nBottom'

    @pytest.mark.parametrize('content', ['', 'Plain text', '{{if x then}}Yes{{end}}'])
    def test_content_without_links_unchanged(self, content):
        assert strip_links(content) == content


@pytest.mark.parametrize('content, expected', [
    ('[[Hall]]', 0),
    ('{{if key then}}[[Hall]]{{end}}', 1),
    ('{{if a then}}{{if b then}}[[Hall]]{{end}}[[Cellar]]{{end}}[[Start]]', 2),
    ('{{if a then}}X{{else}}[[Hall]]{{end}}', 1),
    ('{{if a then}}\n[[Hall]]', 1),
    ('{{end}}[[Hall]]', 0),
    ('{{ending = 1}}{{iffy = 2}}[[Hall]]', 0),
])
def test_count_conditional_links(content, expected):
    assert count_conditional_links(content) == expected


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
