import unittest

from loglens.parser import SESSION_BANNER, parse_combined
from loglens.reader import RawPart, combine_parts
from loglens.regenerate import regenerate


class RegenerateTests(unittest.TestCase):
    def setUp(self):
        self.content = combine_parts(
            [
                RawPart(
                    label="log.history1.txt.zip::log.txt",
                    content="[01-01 00:00:00.000][I] [A] first\n    indented continuation\n[01-01 00:00:01.000][E] [B] second",
                ),
                RawPart(
                    label="log.txt",
                    content=f"{SESSION_BANNER}\nBuild version: 3\n[01-02 00:00:00.000][W] third\n\ttabbed",
                ),
            ]
        )

    def test_all_allowed_is_identity(self):
        count = len(parse_combined(self.content).messages)
        self.assertEqual(regenerate(self.content, set(range(count))), self.content)

    def test_identity_normalizes_crlf(self):
        crlf = self.content.replace("\n", "\r\n")
        self.assertEqual(regenerate(crlf, {0, 1, 2}), self.content)

    def test_delimiters_survive_empty_selection(self):
        output = regenerate(self.content, set()).split("\n")
        self.assertIn("===== BEGIN PART: log.history1.txt.zip::log.txt =====", output)
        self.assertIn("===== END PART: log.txt =====", output)
        self.assertIn(SESSION_BANNER, output)
        self.assertFalse(any(line.startswith("[01-") for line in output))

    def test_selected_message_keeps_its_continuation_lines(self):
        output = regenerate(self.content, {0}).split("\n")
        self.assertIn("[01-01 00:00:00.000][I] [A] first", output)
        self.assertIn("    indented continuation", output)
        self.assertNotIn("[01-01 00:00:01.000][E] [B] second", output)
        self.assertNotIn("\ttabbed", output)

    def test_lines_after_a_part_end_have_no_owner(self):
        content = "[01-01 00:00:00.000][I] a\n===== END PART: x =====\nbetween parts\n[01-01 00:00:01.000][I] b"
        self.assertEqual(
            regenerate(content, {1}),
            "===== END PART: x =====\nbetween parts\n[01-01 00:00:01.000][I] b",
        )

    def test_lines_before_first_header_are_kept(self):
        content = "no owner yet\n[01-01 00:00:00.000][I] a"
        self.assertEqual(regenerate(content, set()), "no owner yet")


def test_regenerating_from_original_is_stable(sample_content):
    once = regenerate(sample_content, {1, 4})
    again = regenerate(sample_content, {1, 4})

    assert once == again
    assert "[01-01 10:00:02.000][W] [Net][Http] slow response" not in once
    assert "  loading config" in once.split("\n")


def test_lines_follow_the_message_above_across_banners(sample_content):
    # The build line sits after the banner but belongs to the preamble message.
    assert "Build version: 1.2.3" in regenerate(sample_content, {0}).split("\n")
    assert "Build version: 1.2.3" not in regenerate(sample_content, {1}).split("\n")
