"""
multipath.conf parser.

This module provides the MultipathConfigParser class for parsing multipath.conf
files and text into a MultipathConfig section tree, and for serializing the tree
back to disk after it has been modified.

Features:
- Hierarchical block parsing (defaults, blacklist, devices/device, multipaths, ...)
- Opening braces on the same line or on the following line
- Repeated keys within a block (e.g. several wwid entries)
- Error reporting with line numbers for debugging
"""

import logging
from typing import List, Optional, Tuple

from .config import ConfigSection, MultipathConfig
from .exceptions import MultipathError


class MultipathConfigParser:
    """multipath.conf parser and writer.

    The grammar is a nested key/value block format:

        defaults {
            user_friendly_names yes
            find_multipaths no
        }
        devices {
            device {
                vendor "Nimble"
                product "Server"
            }
        }

    Values are kept verbatim (including quotes) so a parsed file serializes back
    to an equivalent file.
    """

    COMMENT_PREFIXES = ('#', '!')
    INDENT = "    "

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def parse_config_file(self, filename: str) -> MultipathConfig:
        """Parse a multipath.conf file into a section tree.

        Args:
            filename: Path to the configuration file

        Returns:
            MultipathConfig object containing the parsed sections

        Raises:
            MultipathError: On file access errors or parsing failures
        """
        self.logger.debug("Parsing configuration file: %s", filename)
        try:
            with open(filename, 'r') as f:
                content = f.read()
        except OSError as e:
            raise MultipathError(f"Cannot read config file {filename}: {e}")

        return self.parse_config_text(content)

    def parse_config_text(self, content: str) -> MultipathConfig:
        """Parse multipath.conf text into a section tree.

        Args:
            content: Raw configuration text

        Returns:
            MultipathConfig object containing the parsed sections

        Raises:
            MultipathError: On parsing failures with line number context
        """
        config = MultipathConfig()

        # Keep original line numbers for error messages
        lines = []
        for number, line in enumerate(content.splitlines(), 1):
            line = line.strip()
            if line and not line.startswith(self.COMMENT_PREFIXES):
                lines.append((number, line))

        end = self._parse_block_contents(lines, 0, config.root)
        if end < len(lines):
            number, line = lines[end]
            raise MultipathError(f"Unexpected closing brace at line {number}: '{line}'")
        return config

    def _parse_block_contents(self, lines: List[Tuple[int, str]], start: int,
                              section: ConfigSection) -> int:
        """Parse lines into ``section`` until its closing brace.

        Returns:
            Index of the closing brace line, or len(lines) at end of input
        """
        i = start
        while i < len(lines):
            number, line = lines[i]
            if line == '}':
                return i

            name, header_lines = self._parse_block_header(lines, i)
            if header_lines is None:
                self._parse_single_attribute_line(number, line, section)
                i += 1
                continue

            child = section.add_child(name)
            if header_lines == 0:
                # Empty block on a single line: "name { }"
                i += 1
                continue
            end = self._parse_block_contents(lines, i + header_lines, child)
            if end >= len(lines):
                raise MultipathError(f"Unmatched braces in section '{name}' starting at line {number}")
            i = end + 1
        return i

    def _parse_block_header(self, lines: List[Tuple[int, str]], index: int) -> Tuple[str, Optional[int]]:
        """Detect a section header.

        Handles:
            name {          -> (name, 1)
            name            -> (name, 2)
            {
            name { }        -> (name, 0)

        Returns:
            Tuple of (section name, number of header lines), the count being
            None when the line is not a section header
        """
        number, line = lines[index]
        compact = ''.join(line.split())
        if compact.endswith('{') or compact.endswith('{}'):
            name = line.split('{', 1)[0].strip()
            if not name or len(name.split()) != 1:
                raise MultipathError(f"Malformed section header at line {number}: '{line}'")
            return name, 0 if compact.endswith('{}') else 1
        if len(line.split()) == 1 and index + 1 < len(lines) and lines[index + 1][1] == '{':
            return line, 2
        return line, None

    def _parse_single_attribute_line(self, number: int, line: str, section: ConfigSection) -> bool:
        """Parse a "key value" line into ``section``.

        Returns:
            True if the line contained a property, False if it was ignored
        """
        parts = line.split(None, 1)
        if len(parts) != 2:
            self.logger.warning("Ignoring unrecognized line %s: '%s'", number, line)
            return False
        key, value = parts
        section.add_property(key, value.strip())
        return True

    @staticmethod
    def format_value(value: str) -> str:
        """Quote a value containing whitespace unless it is already quoted."""
        value = str(value)
        if value.startswith('"') and value.endswith('"') and len(value) >= 2:
            return value
        if not value or any(ch.isspace() for ch in value):
            return f'"{value}"'
        return value

    def serialize_config(self, config: MultipathConfig) -> str:
        """Render a section tree as multipath.conf text."""
        lines = []
        self._serialize_section_contents(config.root, 0, lines)
        return "\n".join(lines) + "\n"

    def _serialize_section_contents(self, section: ConfigSection, depth: int, lines: List[str]) -> None:
        indent = self.INDENT * depth
        for key, value in section.properties.items():
            values = value if isinstance(value, list) else [value]
            for item in values:
                lines.append(f"{indent}{key} {self.format_value(item)}")
        for child in section.children:
            lines.append(f"{indent}{child.name} {{")
            self._serialize_section_contents(child, depth + 1, lines)
            lines.append(f"{indent}}}")

    def save_config_file(self, config: MultipathConfig, filename: str) -> None:
        """Serialize a section tree and write it to ``filename``.

        Raises:
            MultipathError: On write failures
        """
        content = self.serialize_config(config)
        try:
            with open(filename, 'w') as f:
                f.write(content)
        except OSError as e:
            raise MultipathError(f"Cannot write config file {filename}: {e}")
        self.logger.info("Configuration saved to %s", filename)
