import unittest

from loglens.channels import NO_CHANNEL, ChannelIndex, build_channel_index, has_unchanneled, prefix_paths
from loglens.parser import parse_combined


class ChannelIndexTests(unittest.TestCase):
    def test_register_adds_immediate_children_for_each_prefix(self):
        index = ChannelIndex()
        index.register(["VSO", "ResourceManagement", "Loader"])

        self.assertEqual(index.children("VSO"), {"ResourceManagement"})
        self.assertEqual(index.children("VSO>ResourceManagement"), {"Loader"})
        self.assertIn("VSO>ResourceManagement>Loader", index)
        self.assertEqual(index.children("VSO>ResourceManagement>Loader"), set())

    def test_register_is_idempotent_and_merges_siblings(self):
        index = ChannelIndex()
        index.register(["Net", "Http"])
        index.register(["Net", "Http"])
        index.register(["Net", "Socket"])

        self.assertEqual(index.children("Net"), {"Http", "Socket"})
        self.assertEqual(len(index), 3)

    def test_zero_channels_register_nothing(self):
        index = ChannelIndex()
        index.register([])
        self.assertEqual(len(index), 0)
        self.assertEqual(index.to_tree(), {})

    def test_every_prefix_is_a_key(self):
        index = ChannelIndex()
        channels = ["A", "B", "C", "D"]
        index.register(channels)
        for path in prefix_paths(channels):
            self.assertIn(path, index)

    def test_tree_export_is_nested_and_sorted(self):
        index = ChannelIndex()
        index.register(["Net", "Socket"])
        index.register(["App"])
        index.register(["Net", "Http", "Get"])

        tree = index.to_tree(include_no_channel=True)

        self.assertEqual(list(tree), [NO_CHANNEL, "App", "Net"])
        self.assertEqual(tree["Net"], {"Http": {"Get": {}}, "Socket": {}})
        self.assertEqual(tree["App"], {})


def test_build_from_sample(sample_content):
    parsed = parse_combined(sample_content)

    index = build_channel_index(parsed.messages)

    assert index.roots() == ["App", "GameStateManager", "Net"]
    assert index.paths() == [
        "App",
        "App>Boot",
        "GameStateManager",
        "GameStateManager>GameStateChanged",
        "Net",
        "Net>Http",
    ]
    assert has_unchanneled(parsed.messages)
