"""
A simple configuration helper built on YAML files that allows configuration to be
layered - defaults / os-specific / user / local, validated against a pydantic schema.

The values of a configuration section are applied to the objects they configure.
"""
