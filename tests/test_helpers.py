"""
Tests for helper and logging utilities.
"""

import logging
import unittest

from rss_downloader.utils.helpers import (
    add_link_digest,
    decode_disposition,
    filename_from_url,
    get_filename,
    query_unescape,
    safe_basename,
    validate_url
)
from rss_downloader.utils.logging_utils import FeedLoggerAdapter, format_bytes, get_feed_logger, log_cycle_summary


class TestContentDisposition(unittest.TestCase):

    def test_query_unescape(self):
        self.assertEqual(query_unescape('a%20b+c'), 'a b c')
        self.assertEqual(query_unescape('%E4%B8%AD.torrent'), '中.torrent')

    def test_query_unescape_rejects_bad_escapes(self):
        for value in ('100%', '%zz', '%4'):
            with self.assertRaises(ValueError):
                query_unescape(value)

    def test_query_unescape_rejects_invalid_utf8(self):
        with self.assertRaises(ValueError):
            query_unescape('%ff%fe')

    def test_decode_disposition_falls_back_to_raw(self):
        raw = 'attachment; filename="50%off.torrent"'
        self.assertEqual(decode_disposition(raw), raw)
        self.assertEqual(decode_disposition(''), '')

    def test_get_filename(self):
        self.assertEqual(get_filename('attachment; filename="report.torrent"'), 'report.torrent')
        self.assertEqual(get_filename('attachment;filename=report.torrent'), 'report.torrent')
        self.assertEqual(get_filename('attachment; FILENAME="Report.torrent"'), 'Report.torrent')

    def test_get_filename_first_directive_wins(self):
        self.assertEqual(get_filename('attachment; filename=a.torrent; filename=b.torrent'), 'a.torrent')

    def test_get_filename_extended_only_as_fallback(self):
        self.assertEqual(get_filename("attachment; filename*=UTF-8''ext.torrent"), 'ext.torrent')
        self.assertEqual(
            get_filename("attachment; filename*=UTF-8''ext.torrent; filename=plain.torrent"),
            'plain.torrent'
        )

    def test_get_filename_missing(self):
        self.assertEqual(get_filename('inline'), '')
        self.assertEqual(get_filename(''), '')

    def test_safe_basename(self):
        self.assertEqual(safe_basename('dir/sub/file.torrent'), 'file.torrent')
        self.assertEqual(safe_basename('..\\..\\file.torrent'), 'file.torrent')
        self.assertEqual(safe_basename('..'), '')
        self.assertEqual(safe_basename(''), '')

    def test_filename_from_url(self):
        self.assertEqual(filename_from_url('https://example.com/a/b/file%201.torrent?x=1'), 'file 1.torrent')
        self.assertEqual(filename_from_url('https://example.com/'), '')
        self.assertEqual(filename_from_url('https://example.com'), '')

    def test_add_link_digest(self):
        first = add_link_digest('download.php', 'https://t.example.com/download.php?id=1')
        second = add_link_digest('download.php', 'https://t.example.com/download.php?id=2')

        self.assertNotEqual(first, second)
        self.assertRegex(first, r'^download-[0-9a-f]{10}\.php$')
        self.assertEqual(first, add_link_digest('download.php', 'https://t.example.com/download.php?id=1'))
        self.assertRegex(add_link_digest('README', 'https://example.com/README'), r'^README-[0-9a-f]{10}$')


class TestValidateUrl(unittest.TestCase):

    def test_valid(self):
        self.assertTrue(validate_url('https://example.com/rss'))
        self.assertTrue(validate_url('http://localhost:8080/feed.xml'))

    def test_invalid(self):
        self.assertFalse(validate_url(''))
        self.assertFalse(validate_url(None))
        self.assertFalse(validate_url('ftp://example.com/rss'))
        self.assertFalse(validate_url('example.com/rss'))


class TestLoggingUtils(unittest.TestCase):

    def test_feed_logger_prefix(self):
        log = get_feed_logger('mysite', 'tests.feed')
        self.assertIsInstance(log, FeedLoggerAdapter)

        with self.assertLogs('tests.feed', level='INFO') as captured:
            log_cycle_summary(log, 5, 2)

        self.assertEqual(captured.records[0].getMessage(), '[mysite]\tGet 5 links include 2 new links')

    def test_format_bytes(self):
        self.assertEqual(format_bytes(0), '0 B')
        self.assertEqual(format_bytes(512), '512.0 B')
        self.assertEqual(format_bytes(2048), '2.0 KB')
        self.assertEqual(format_bytes(5 * 1024 * 1024), '5.0 MB')


if __name__ == '__main__':
    unittest.main()
