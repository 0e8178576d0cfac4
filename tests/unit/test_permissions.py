"""
Unit tests for the permission and size expression parsers.
"""

import operator

import pytest

from filefind.errors import ConfigurationError
from filefind.tools.permissions import parse_size_spec, parse_symbolic_mode


class TestParseSymbolicMode:
    """Test cases for parse_symbolic_mode."""

    def test_single_clause(self):
        assert parse_symbolic_mode("g=rw") == 0o060
        assert parse_symbolic_mode("u=rw") == 0o600
        assert parse_symbolic_mode("o+x") == 0o001

    def test_all_who(self):
        """The 'a' class covers user, group and other."""
        assert parse_symbolic_mode("a+r") == 0o444
        assert parse_symbolic_mode("ugo+w") == 0o222

    def test_clauses_accumulate_left_to_right(self):
        assert parse_symbolic_mode("u+rwx,g+rx") == 0o750
        assert parse_symbolic_mode("a+rwx,o-w") == 0o775

    def test_assignment_replaces_accumulated_mask(self):
        assert parse_symbolic_mode("u+x,g=r") == 0o040

    def test_whitespace_around_clauses(self):
        assert parse_symbolic_mode(" u+r , g+r ") == 0o440

    @pytest.mark.parametrize("expression", ["", "g", "rw", "g*rw", "z=rw", "g=rwq", "u+r,", "644"])
    def test_malformed_expressions(self, expression):
        with pytest.raises(ConfigurationError, match="Invalid symbolic permissions"):
            parse_symbolic_mode(expression)


class TestParseSizeSpec:
    """Test cases for parse_size_spec."""

    def test_integer_means_exact(self):
        symbol, comparator, number = parse_size_spec(200)
        assert symbol == '=='
        assert comparator is operator.eq
        assert number == 200

    def test_comparator_strings(self):
        assert parse_size_spec(">= 200")[1:] == (operator.ge, 200)
        assert parse_size_spec("<10")[1:] == (operator.lt, 10)
        assert parse_size_spec("= 5")[1:] == (operator.eq, 5)
        assert parse_size_spec("==5")[1:] == (operator.eq, 5)

    def test_surrounding_whitespace_is_ignored(self):
        symbol, comparator, number = parse_size_spec(" >= 200")
        assert symbol == '>='
        assert comparator(200, number)
        assert not comparator(199, number)

    @pytest.mark.parametrize("spec", ["?200", "200", ">=", "> abc", "=> 5", "<> 5", "", True, -1, 1.5])
    def test_malformed_specs(self, spec):
        with pytest.raises(ConfigurationError):
            parse_size_spec(spec)
