# Copyright 2008-2018 Univa Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import os
import re
import shlex
from typing import Any, Dict, List, Optional

from stratus.exceptions.configurationError import ConfigurationError


class SettingValidationError(ConfigurationError):
    pass


class BaseSetting(object):
    """
    Describes a single configuration setting.

    Values are always provided as strings (as read from the configuration
    file) and converted by dump() after validation.
    """

    type = 'string'

    def __init__(self, display_name: Optional[str] = None,
                 description: Optional[str] = None,
                 required: bool = False,
                 default: Optional[str] = None,
                 list: bool = False,  # pylint: disable=redefined-builtin
                 list_separator: str = ',',
                 secret: bool = False,
                 requires: Optional[List[str]] = None,
                 mutually_exclusive: Optional[List[str]] = None,
                 values: Optional[List[str]] = None,
                 advanced: bool = False,
                 group: Optional[str] = None,
                 group_order: int = 0) -> None:
        self.display_name = display_name
        self.description = description
        self.required = required
        self.default = default
        self.list = list
        self.list_separator = list_separator
        self.secret = secret
        self.requires = requires or []
        self.mutually_exclusive = mutually_exclusive or []
        self.values = values or []
        self.advanced = advanced
        self.group = group
        self.group_order = group_order

    def _split(self, value: str) -> List[str]:
        return [item.strip() for item in value.split(self.list_separator)
                if item.strip()]

    def validate(self, value: str) -> None:
        items = self._split(value) if self.list else [value]

        for item in items:
            self.validate_value(item)

    def validate_value(self, value: str) -> None:
        if self.values and value not in self.values:
            raise SettingValidationError(
                'Value must be one of: {}'.format(', '.join(self.values)))

    def dump(self, value: str) -> Any:
        if self.list:
            return [self.dump_value(item) for item in self._split(value)]

        return self.dump_value(value)

    def dump_value(self, value: str) -> Any:
        return value


class StringSetting(BaseSetting):
    pass


class BooleanSetting(BaseSetting):
    type = 'boolean'

    TRUE_VALUES = ('1', 'true', 'yes', 'on')
    FALSE_VALUES = ('0', 'false', 'no', 'off')

    def validate_value(self, value: str) -> None:
        if value.lower() not in self.TRUE_VALUES + self.FALSE_VALUES:
            raise SettingValidationError(
                'Invalid boolean value: {}'.format(value))

    def dump_value(self, value: str) -> bool:
        return value.lower() in self.TRUE_VALUES


class IntegerSetting(BaseSetting):
    type = 'integer'

    def validate_value(self, value: str) -> None:
        try:
            int(value)
        except ValueError:
            raise SettingValidationError(
                'Invalid integer value: {}'.format(value))

        super().validate_value(value)

    def dump_value(self, value: str) -> int:
        return int(value)


class FloatSetting(BaseSetting):
    type = 'float'

    def validate_value(self, value: str) -> None:
        try:
            float(value)
        except ValueError:
            raise SettingValidationError(
                'Invalid float value: {}'.format(value))

    def dump_value(self, value: str) -> float:
        return float(value)


class FileSetting(StringSetting):
    """
    Path to a file. Relative paths are resolved against 'base_path'.
    """

    type = 'file'

    def __init__(self, base_path: Optional[str] = None,
                 must_exist: bool = True, **kwargs) -> None:
        super().__init__(**kwargs)

        self.base_path = base_path
        self.must_exist = must_exist

    def _resolve(self, value: str) -> str:
        if self.base_path and not os.path.isabs(value):
            return os.path.join(self.base_path, value)

        return value

    def validate_value(self, value: str) -> None:
        if self.must_exist and not os.path.exists(self._resolve(value)):
            raise SettingValidationError(
                'File does not exist: {}'.format(self._resolve(value)))

    def dump_value(self, value: str) -> str:
        return self._resolve(value)


class TagListSetting(StringSetting):
    """
    Space-separated list of key=value pairs (shell quoting supported)
    """

    type = 'tag_list'

    def __init__(self, key_validation_regex: Optional[str] = None,
                 value_validation_regex: Optional[str] = None,
                 **kwargs) -> None:
        super().__init__(**kwargs)

        self.key_validation_regex = key_validation_regex
        self.value_validation_regex = value_validation_regex

    def validate(self, value: str) -> None:
        try:
            tags = self.dump(value)
        except ValueError as exc:
            raise SettingValidationError(
                'Invalid tag list: {}'.format(exc))

        for key, tag_value in tags.items():
            if self.key_validation_regex and \
                    not re.fullmatch(self.key_validation_regex, key):
                raise SettingValidationError(
                    'Invalid tag key: {}'.format(key))

            if self.value_validation_regex and \
                    not re.fullmatch(self.value_validation_regex, tag_value):
                raise SettingValidationError(
                    'Invalid tag value for {}: {}'.format(key, tag_value))

    def dump(self, value: str) -> Dict[str, str]:
        tags = {}

        for tagdef in shlex.split(value):
            key, tag_value = tagdef.rsplit('=', 1) \
                if '=' in tagdef else (tagdef, '')
            tags[key] = tag_value

        return tags


def validate_config(settings: Dict[str, BaseSetting],
                    config: Dict[str, str]) -> Dict[str, Any]:
    """
    Validate raw (string) configuration against the settings schema and
    return it with defaults applied and values converted.

    :raises ConfigurationError: listing every problem found
    """

    errors = []

    for key in config:
        if key not in settings:
            errors.append('{}: unknown setting'.format(key))

    for key, setting in settings.items():
        if key not in config:
            if setting.required:
                errors.append('{}: required setting is missing'.format(key))

            continue

        for required_key in setting.requires:
            if required_key not in config:
                errors.append('{}: requires {}'.format(key, required_key))

        for exclusive_key in setting.mutually_exclusive:
            if exclusive_key in config:
                errors.append('{}: can not be used together with {}'.format(
                    key, exclusive_key))

        try:
            setting.validate(config[key])
        except SettingValidationError as exc:
            errors.append('{}: {}'.format(key, exc))

    if errors:
        raise ConfigurationError(
            'Invalid configuration: {}'.format('; '.join(errors)))

    result: Dict[str, Any] = {}

    for key, setting in settings.items():
        value = config.get(key, setting.default)

        if value is not None:
            result[key] = setting.dump(value)

    return result
