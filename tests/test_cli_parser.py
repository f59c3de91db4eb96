"""Tests for the REPL command parser."""

import pytest

from cli.models import (
    ExportCommand,
    FetchCommand,
    LatestCommand,
    ManifestCommand,
    PlayCommand,
    PublishCommand,
    SearchCommand,
)
from cli.parser import ParseError, parse_command


def test_parse_publish():
    assert parse_command('publish talk.mp4') == PublishCommand(file_path='talk.mp4')
    assert parse_command('publish "my talk.mp4" Conference keynote') == PublishCommand(
        file_path='my talk.mp4', description='Conference keynote'
    )
    assert parse_command('publish --server-split talk.mp4 Keynote') == PublishCommand(
        file_path='talk.mp4', description='Keynote', server_split=True
    )


@pytest.mark.parametrize("line,expected", [
    ('manifest abc', ManifestCommand(asset_id='abc')),
    ('fetch abc', FetchCommand(asset_id='abc')),
    ('fetch abc out.mp4', FetchCommand(asset_id='abc', output_path='out.mp4')),
    ('export abc ./dl', ExportCommand(asset_id='abc', output_path='./dl')),
    ('play abc', PlayCommand(asset_id='abc')),
    ('latest', LatestCommand()),
])
def test_parse_asset_commands(line, expected):
    assert parse_command(line) == expected


def test_parse_search():
    assert parse_command('search keynote') == SearchCommand(query='keynote')
    assert parse_command('search "conference keynote" 2 5') == SearchCommand(
        query='conference keynote', page=2, size=5
    )


@pytest.mark.parametrize("line,message", [
    ('', 'Empty command'),
    ('   ', 'Empty command'),
    ('publish', 'requires a file'),
    ('publish --server-split', 'requires a file'),
    ('manifest', 'exactly 1 argument'),
    ('manifest a b', 'exactly 1 argument'),
    ('fetch', '1 or 2 arguments'),
    ('play a b c', '1 or 2 arguments'),
    ('search', 'requires a query'),
    ('search a b', 'must be integers'),
    ('search a -1', 'page must be >= 0'),
    ('search a 0 0', 'size must be >= 1'),
    ('search a 0 1 extra', 'at most 3 arguments'),
    ('latest now', 'no arguments'),
    ('publish "unterminated', 'Invalid syntax'),
    ('upload talk.mp4', 'Unknown command: upload'),
])
def test_parse_errors(line, message):
    with pytest.raises(ParseError, match=message):
        parse_command(line)
