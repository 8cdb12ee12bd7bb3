import os
import platform

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

# The default extension for configuration files
config_extension = '.yml'

# the packaged configuration, located beside this module
default_config_name = 'lazyfeed'
default_config_directory = os.path.dirname(__file__)


class ConfigError(Exception):
    """ A configuration file could not be read or failed validation. """


class ConnectorSettings(BaseModel):
    model_config = ConfigDict(extra='forbid')

    ack_message: str = 'ack'
    complete_reason: str = 'Normal Closure'


class ConduitSettings(BaseModel):
    model_config = ConfigDict(extra='forbid')

    open_timeout: float | None = Field(default=10, gt=0)
    ping_interval: float | None = Field(default=20, gt=0)
    ping_timeout: float | None = Field(default=20, gt=0)
    close_timeout: float | None = Field(default=10, gt=0)


class SubscriptionSettings(BaseModel):
    model_config = ConfigDict(extra='forbid')

    retry_period: float = Field(default=0, ge=0)


class LazyfeedConfig(BaseModel):
    """ The schema the merged configuration files are validated against. """
    model_config = ConfigDict(extra='forbid')

    connector: ConnectorSettings = ConnectorSettings()
    conduit: ConduitSettings = ConduitSettings()
    subscription: SubscriptionSettings = SubscriptionSettings()


def config_flavor(name, flavor=None):
    configname = name if not flavor else name + '.' + flavor
    return configname


def config_filename(name, directory=None):
    """
    Determines the location of a config file in a directory.
    """
    config_file = os.path.join(directory, name + config_extension)
    return config_file


def load_config_file_base(file, must_exist=True) -> dict:
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The mapping read from the file. A missing optional file or an empty file gives an empty mapping.
    """
    if not must_exist and not os.path.exists(file):
        return {}
    try:
        with open(file, encoding='utf-8') as f:
            conf = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(str(e) + ' at ' + file) from e
    if conf is None:
        return {}
    if not isinstance(conf, dict):
        raise ConfigError('expected a mapping at ' + file)
    return conf


def config_flavor_file(name, directory, subpart=None) -> dict:
    """
    Loads a specialization of a config file. The configuration file is expected to be named
    after the base, followed by a period and then the specialization, if the specialization is given,
    otherwise just the base name.
    :param name:    The name of the base configuration
    :param subpart: The name of the specialization.
    :return: The mapping for the configuration file.
    """
    configname = config_flavor(name, subpart)
    file = config_filename(configname, directory)
    return load_config_file_base(file, False)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def merge(base: dict, override: dict) -> dict:
    """
    Merges override into a copy of base. Nested mappings are merged, other values replaced.
    >>> merge({'a': {'b': 1, 'c': 2}}, {'a': {'c': 3}})
    {'a': {'b': 1, 'c': 3}}
    """
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            v = merge(result[k], v)
        result[k] = v
    return result


def load_config(name=default_config_name, directory=default_config_directory) -> LazyfeedConfig:
    """
        Loads all the configuration files that relate to the given name.
        Configurations are loaded in this order:
        - the default specialization
        - the platform specialization
        - the user override
        - the local configuration
        The configurations are flattened into a single configuration, and then validated
        against the LazyfeedConfig schema.
    :directory: the location of the configuration files
    :return: the validated configuration
    """
    local_config = config_flavor_file(name, directory)
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_config = load_config_file_base(os.path.expanduser(
        '~/' + name + config_extension), must_exist=False)
    config = {}
    for conf in (default_config, platform_config, user_config, local_config):
        config = merge(config, conf)
    try:
        return LazyfeedConfig.model_validate(config)
    except ValidationError as e:
        raise ConfigError("the config file %s failed validation %s" % (name, e)) from e


def apply_conf(conf: BaseModel, target):
    """
    Applies the values in a configuration section to a target object.
    It does this by iterating over the items in the section and setting any attributes the target already has.
    """
    for k, v in conf.model_dump().items():
        if hasattr(target, k):
            setattr(target, k, v)
    return target
