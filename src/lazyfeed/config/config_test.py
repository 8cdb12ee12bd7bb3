import os
import tempfile
import unittest
from unittest.mock import patch

from lazyfeed.config.config import ConfigError, LazyfeedConfig, apply_conf, config_filename, config_flavor, \
    load_config, load_config_file_base, map_os_name, merge

test_directory = os.path.join(os.path.dirname(__file__), 'testdata')


class Target:
    ack_message = None
    complete_reason = None


class ConfigTestCase(unittest.TestCase):

    def setUp(self):
        # keep the user's own configuration out of the tests
        home = tempfile.mkdtemp()
        patcher = patch('os.path.expanduser', side_effect=lambda p: p.replace('~', home))
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_config_file_not_found(self):
        self.assertRaises(IOError, load_config_file_base, 'blah')

    def test_optional_config_file_not_found(self):
        self.assertEqual(load_config_file_base('blah', must_exist=False), {})

    def test_config_file_invalid_syntax(self):
        file = config_filename('invalid_syntax.default', test_directory)
        with self.assertRaisesRegex(ConfigError, '.*invalid_syntax.default.yml'):
            load_config_file_base(file)

    def test_config_file_not_a_mapping(self):
        file = config_filename('not_a_mapping.default', test_directory)
        with self.assertRaisesRegex(ConfigError, 'expected a mapping'):
            load_config_file_base(file)

    def test_config_file_invalid_schema(self):
        with self.assertRaisesRegex(ConfigError, 'the config file invalid_schema failed validation'):
            load_config('invalid_schema', test_directory)

    def test_config_file_unknown_key(self):
        with self.assertRaisesRegex(ConfigError, 'the config file unknown_key failed validation'):
            load_config('unknown_key', test_directory)

    def test_can_retrieve_config_file(self):
        name = config_flavor('sample', 'default')
        file = config_filename(name, test_directory)
        self.assertTrue(os.path.exists(file), "expected config path %s to exist" % file)

    def test_config_flavor(self):
        self.assertEqual(config_flavor('name'), 'name')
        self.assertEqual(config_flavor('name', 'osx'), 'name.osx')

    def test_layers_are_merged(self):
        conf = load_config('sample', test_directory)
        self.assertEqual(conf.connector.ack_message, 'hello')
        self.assertEqual(conf.connector.complete_reason, 'local reason')
        self.assertEqual(conf.subscription.retry_period, 1.5)
        self.assertEqual(conf.conduit.open_timeout, 10)

    def test_user_config_overrides_defaults(self):
        user_file = os.path.expanduser('~/sample.yml')
        with open(user_file, 'w') as f:
            f.write('subscription:\n  retry_period: 3\n')
        conf = load_config('sample', test_directory)
        self.assertEqual(conf.subscription.retry_period, 3)
        self.assertEqual(conf.connector.complete_reason, 'local reason')

    def test_packaged_defaults(self):
        conf = load_config()
        self.assertEqual(conf, LazyfeedConfig())

    def test_missing_config_gives_defaults(self):
        self.assertEqual(load_config('missing', test_directory), LazyfeedConfig())

    def test_map_os_name(self):
        self.assertEqual(map_os_name('Windows'), 'windows')
        self.assertEqual(map_os_name('Darwin'), 'osx')
        self.assertEqual(map_os_name('darwin'), 'osx')

    def test_merge_replaces_non_mappings(self):
        self.assertEqual(merge({'a': {'b': 1}}, {'a': 2}), {'a': 2})
        self.assertEqual(merge({'a': 1}, {'b': 2}), {'a': 1, 'b': 2})

    def test_apply_conf_sets_existing_attributes_only(self):
        target = Target()
        apply_conf(load_config('sample', test_directory).connector, target)
        self.assertEqual(target.ack_message, 'hello')
        self.assertEqual(target.complete_reason, 'local reason')


if __name__ == '__main__':  # pragma no cover
    unittest.main()
