"""
Unit tests for the RuleSet model.

Tests defaults, validation of every rule parameter, the option-map
constructor and the capability lookup.
"""

import os

import pytest
from pydantic import ValidationError

from filefind.errors import ConfigurationError
from filefind.models.rules import Capability, EntryType, RuleSet


class TestRuleSetDefaults:
    """Test cases for RuleSet defaults."""

    def test_defaults(self):
        rules = RuleSet()

        assert rules.path == [os.getcwd()]
        assert rules.name == '*'
        assert rules.follow is True
        assert rules.maxdepth is None
        assert rules.mindepth is None
        assert rules.mount is None
        assert rules.mount_device is None
        assert rules.checks == []

    def test_pattern_alias(self):
        rules = RuleSet(pattern='*.txt')
        assert rules.name == '*.txt'
        assert rules.pattern == '*.txt'

    def test_single_path_is_wrapped(self, tmp_path):
        rules = RuleSet(path=str(tmp_path))
        assert rules.path == [str(tmp_path)]

    def test_relative_paths_are_made_absolute(self):
        rules = RuleSet(path=['.'])
        assert rules.path == [os.getcwd()]

    def test_rules_are_immutable(self):
        rules = RuleSet()
        with pytest.raises(ValidationError):
            rules.name = '*.rb'


class TestRuleSetValidation:
    """Test cases for RuleSet field validation."""

    def test_negative_depth_rejected(self):
        with pytest.raises(ValidationError):
            RuleSet(maxdepth=-1)
        with pytest.raises(ValidationError):
            RuleSet(mindepth=-2)

    def test_ftype_tags_and_aliases(self):
        assert RuleSet(ftype='file').ftype is EntryType.FILE
        assert RuleSet(ftype='directory').ftype is EntryType.DIRECTORY
        assert RuleSet(ftype='characterSpecial').ftype is EntryType.CHARACTER_SPECIAL
        assert RuleSet(ftype='d').ftype is EntryType.DIRECTORY
        assert RuleSet(ftype='symlink').ftype is EntryType.LINK

    def test_invalid_ftype(self):
        with pytest.raises(ValidationError, match="Invalid file type"):
            RuleSet(ftype='weird')

    def test_perm_values(self):
        assert RuleSet(perm=0o644).perm == 0o644
        assert RuleSet(perm='g=rw').perm == 'g=rw'

        with pytest.raises(ValidationError):
            RuleSet(perm=0o17777)
        with pytest.raises(ValidationError, match="Invalid symbolic permissions"):
            RuleSet(perm='g*rw')

    def test_size_values(self):
        assert RuleSet(size=100).size == 100
        assert RuleSet(size='>= 200').size == '>= 200'

        with pytest.raises(ValidationError, match="invalid size string"):
            RuleSet(size='?200')

    def test_prune_must_compile(self):
        assert RuleSet(prune='^foo').prune == '^foo'
        with pytest.raises(ValidationError, match="Invalid prune pattern"):
            RuleSet(prune='(unclosed')

    def test_mount_device_captured(self, tmp_path):
        rules = RuleSet(mount=str(tmp_path))
        assert rules.mount_device == os.stat(str(tmp_path)).st_dev

    def test_unresolvable_mount(self):
        with pytest.raises(ValidationError, match="Cannot resolve mount path"):
            RuleSet(mount='/bogus/mount/point')

    def test_checks_resolved_by_name(self):
        rules = RuleSet(checks=[('readable?', True), (Capability.WRITABLE, False)])
        assert rules.checks == [(Capability.READABLE, True), (Capability.WRITABLE, False)]

    def test_unknown_check_rejected(self):
        with pytest.raises(ValidationError):
            RuleSet(checks=[('flying?', True)])


class TestCapability:
    """Test cases for the capability lookup."""

    @pytest.mark.parametrize("name, expected", [
        ('readable?', Capability.READABLE),
        ('Writable', Capability.WRITABLE),
        ('world-readable?', Capability.WORLD_READABLE),
        ('grpowned?', Capability.GRPOWNED),
        (Capability.STICKY, Capability.STICKY),
    ])
    def test_from_name(self, name, expected):
        assert Capability.from_name(name) is expected

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError, match="invalid option 'bogus\\?'"):
            Capability.from_name('bogus?')


class TestFromOptions:
    """Test cases for RuleSet.from_options."""

    def test_basic_options(self, tmp_path):
        rules = RuleSet.from_options({
            'name': '*.rb',
            'follow': False,
            'path': [str(tmp_path)],
            'readable?': True,
        })

        assert rules.name == '*.rb'
        assert rules.follow is False
        assert rules.path == [str(tmp_path)]
        assert rules.checks == [(Capability.READABLE, True)]

    def test_keys_are_case_insensitive(self):
        rules = RuleSet.from_options({'NAME': '*.txt', 'MaxDepth': 2})
        assert rules.name == '*.txt'
        assert rules.maxdepth == 2

    def test_pattern_key(self):
        assert RuleSet.from_options({'pattern': '*.doc'}).name == '*.doc'

    def test_empty_options(self):
        assert RuleSet.from_options({}) == RuleSet()
        assert RuleSet.from_options(None).name == '*'

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError, match="invalid option 'bogus'"):
            RuleSet.from_options({'bogus': 1})

    def test_unknown_capability(self):
        with pytest.raises(ConfigurationError, match="invalid option"):
            RuleSet.from_options({'flying?': True})

    def test_invalid_values_raise_configuration_error(self):
        with pytest.raises(ConfigurationError, match="invalid size string"):
            RuleSet.from_options({'size': '?200'})
        with pytest.raises(ConfigurationError, match="Invalid symbolic permissions"):
            RuleSet.from_options({'perm': 'x=rw'})
        with pytest.raises(ConfigurationError, match="Cannot resolve mount path"):
            RuleSet.from_options({'mount': '/bogus/mount/point'})

    def test_to_options_round_trip(self, tmp_path):
        options = {
            'path': [str(tmp_path)],
            'name': '*.py',
            'follow': False,
            'maxdepth': 3,
            'ftype': 'file',
            'perm': 'u=rw',
            'size': '>= 10',
            'prune': '^build$',
            'writable?': False,
        }
        rules = RuleSet.from_options(options)

        assert rules.to_options() == options
        assert RuleSet.from_options(rules.to_options()) == rules

    def test_str(self):
        rules = RuleSet(name='*.py', maxdepth=2, prune='foo')
        text = str(rules)
        assert "Name: '*.py'" in text
        assert "Depth: None..2" in text
        assert "Prune: 'foo'" in text
