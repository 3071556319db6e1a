#!/usr/bin/env python3
"""
Unit tests for the multipath.conf parser.

Test Strategy:
- Parse realistic multipath.conf text (no filesystem access except tmp_path)
- Check the section tree, repeated keys, brace placement variants
- Check error reporting with line numbers for malformed input
- Check that serialization parses back to the same tree
"""

import pytest

from mpathadmin.config import MultipathConfig
from mpathadmin.exceptions import MultipathError
from mpathadmin.parser import MultipathConfigParser


class TestMultipathConfigParser:
    """Test parsing of multipath.conf text into a section tree."""

    def setup_method(self):
        self.parser = MultipathConfigParser()

    def test_parse_nested_sections(self, sample_multipath_config):
        """Top-level sections keep file order and device sections nest under devices."""
        config = self.parser.parse_config_text(sample_multipath_config)

        names = [section.name for section in config.root.children]
        assert names == ["defaults", "blacklist", "blacklist_exceptions", "devices"]

        devices = config.get_section("devices")
        vendors = [device.get_property("vendor") for device in devices.find_children("device")]
        assert vendors == ["Nimble", "3PARdata"]

    def test_values_kept_verbatim(self, sample_multipath_config):
        """Quotes are preserved in the tree and stripped by get_property."""
        config = self.parser.parse_config_text(sample_multipath_config)
        nimble = config.get_device_section("Nimble")

        assert nimble.properties["hardware_handler"] == '"1 alua"'
        assert nimble.get_property("hardware_handler") == "1 alua"
        assert nimble.get_property("path_checker") == "tur"
        assert nimble.get_property("missing", "default") == "default"

    def test_repeated_keys_become_lists(self, sample_multipath_config):
        config = self.parser.parse_config_text(sample_multipath_config)
        exceptions = config.get_section("blacklist_exceptions")

        assert exceptions.properties["wwid"] == [
            '"2a1b6b4d8b1c5c3a06c9ce9000000001"',
            '"2a1b6b4d8b1c5c3a06c9ce9000000002"',
        ]
        assert exceptions.get_property("wwid") == "2a1b6b4d8b1c5c3a06c9ce9000000001"

    def test_comments_and_blank_lines_ignored(self):
        config = self.parser.parse_config_text("""
        # comment
        ! another comment style
        defaults {

            # nested comment
            polling_interval 10
        }
        """)
        assert config.get_section("defaults").properties == {"polling_interval": "10"}

    def test_brace_on_next_line(self):
        config = self.parser.parse_config_text("""
        defaults
        {
            polling_interval 5
        }
        """)
        assert config.get_section("defaults").get_property("polling_interval") == "5"

    def test_empty_block_on_one_line(self):
        config = self.parser.parse_config_text("blacklist { }\ndefaults {\n}\n")
        assert config.get_section("blacklist") is not None
        assert config.get_section("blacklist").properties == {}
        assert config.get_section("defaults").children == []

    def test_unmatched_braces(self):
        with pytest.raises(MultipathError, match="Unmatched braces in section 'devices' starting at line 3"):
            self.parser.parse_config_text("defaults {\n}\ndevices {\n    device {\n    }\n")

    def test_unexpected_closing_brace(self):
        with pytest.raises(MultipathError, match="Unexpected closing brace at line 3"):
            self.parser.parse_config_text("defaults {\n}\n}\n")

    def test_malformed_section_header(self):
        with pytest.raises(MultipathError, match="Malformed section header at line 1"):
            self.parser.parse_config_text("two words {\n}\n")

    def test_single_token_line_is_ignored(self, caplog):
        config = self.parser.parse_config_text("defaults {\n    orphan\n    polling_interval 10\n}\n")

        assert config.get_section("defaults").properties == {"polling_interval": "10"}
        assert "Ignoring unrecognized line 2" in caplog.text

    def test_parse_config_file(self, fixtures_dir):
        config = self.parser.parse_config_file(str(fixtures_dir / "multipath.conf"))
        assert config.get_device_section("3PARdata").get_property("product") == "VV"

    def test_parse_missing_file(self, tmp_path):
        with pytest.raises(MultipathError, match="Cannot read config file"):
            self.parser.parse_config_file(str(tmp_path / "missing.conf"))


class TestMultipathConfigSerialization:
    """Test writing the section tree back as multipath.conf text."""

    def setup_method(self):
        self.parser = MultipathConfigParser()

    def test_format_value(self):
        assert MultipathConfigParser.format_value("tur") == "tur"
        assert MultipathConfigParser.format_value("1 alua") == '"1 alua"'
        assert MultipathConfigParser.format_value('"1 alua"') == '"1 alua"'
        assert MultipathConfigParser.format_value("") == '""'

    def test_serialize_layout(self):
        config = MultipathConfig()
        defaults = config.add_section("defaults")
        defaults.properties["find_multipaths"] = "no"
        devices = config.add_section("devices")
        device = config.add_section("device", devices)
        device.properties["vendor"] = "Nimble"
        device.properties["hardware_handler"] = "1 alua"

        assert self.parser.serialize_config(config) == (
            "defaults {\n"
            "    find_multipaths no\n"
            "}\n"
            "devices {\n"
            "    device {\n"
            "        vendor Nimble\n"
            '        hardware_handler "1 alua"\n'
            "    }\n"
            "}\n"
        )

    def test_serialized_text_parses_back(self, sample_multipath_config):
        """Sections, properties and repeated keys survive a save and reload."""
        original = self.parser.parse_config_text(sample_multipath_config)
        reparsed = self.parser.parse_config_text(self.parser.serialize_config(original))

        assert reparsed == original

    def test_save_config_file(self, tmp_path, nimble_device_config):
        config = self.parser.parse_config_text(nimble_device_config)
        target = tmp_path / "multipath.conf"

        self.parser.save_config_file(config, str(target))

        assert self.parser.parse_config_file(str(target)) == config

    def test_save_to_unwritable_location(self, tmp_path):
        with pytest.raises(MultipathError, match="Cannot write config file"):
            self.parser.save_config_file(MultipathConfig(), str(tmp_path / "missing" / "multipath.conf"))
