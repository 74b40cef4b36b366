"""
Unit tests for generator configuration.
"""

import json

import pytest

from ffibind.config import GeneratorConfig, TARGET_OPTIONS
from ffibind.errors import ConfigError


class TestGeneratorConfig:

    def test_defaults(self):
        config = GeneratorConfig()
        assert config.pointer_width == 8
        assert config.docs is True
        assert config.options('c') == TARGET_OPTIONS['c']
        assert config.options('lua')['export_macro'] == 'FFIBIND_API'

    def test_target_options_merge_with_defaults(self):
        config = GeneratorConfig(c={'ifndef': 'MY_H'})
        assert config.options('c')['ifndef'] == 'MY_H'
        assert config.options('c')['directives'] == []

    def test_unknown_target_has_no_options(self):
        assert GeneratorConfig().options('rust') == {}

    def test_unknown_key(self):
        with pytest.raises(ConfigError) as exc:
            GeneratorConfig.from_dict({'librery': 'x'})
        assert exc.value.key == 'librery'

    def test_unknown_target_option(self):
        with pytest.raises(ConfigError, match="unknown python option 'docstring'"):
            GeneratorConfig(python={'docstring': 'x'})

    def test_pointer_width(self):
        with pytest.raises(ConfigError, match='pointer width'):
            GeneratorConfig(pointer_width=2)

    def test_load(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({
            'library': 'demo',
            'targets': ['c', 'python'],
            'ignore': ['internal_fn'],
            'lua': {'module_name': 'demo.core'},
        }))
        config = GeneratorConfig.load(str(path))
        assert config.library == 'demo'
        assert config.targets == ['c', 'python']
        assert config.ignore == ['internal_fn']
        assert config.options('lua')['module_name'] == 'demo.core'

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text('{not json')
        with pytest.raises(ConfigError, match='cannot read configuration'):
            GeneratorConfig.load(str(path))

    def test_load_non_object(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text('[1, 2]')
        with pytest.raises(ConfigError, match='JSON object'):
            GeneratorConfig.load(str(path))

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            GeneratorConfig.load(str(tmp_path / 'missing.json'))
