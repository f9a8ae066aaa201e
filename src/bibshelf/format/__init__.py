"""Formatting heuristics: TeX markup, names and citation keys."""

from bibshelf.format.keys import find_duplicate_keys, generate_key, generate_keys
from bibshelf.format.names import format_name, format_names, parse_name, split_names
from bibshelf.format.text import (
    capitalize_words,
    remove_short_words,
    remove_tex_markup,
    to_ascii,
    ucfirst,
)

__all__ = [
    "capitalize_words",
    "find_duplicate_keys",
    "format_name",
    "format_names",
    "generate_key",
    "generate_keys",
    "parse_name",
    "remove_short_words",
    "remove_tex_markup",
    "split_names",
    "to_ascii",
    "ucfirst",
]
