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

import configparser
import logging
from typing import Dict, List, Optional, Tuple

from stratus.exceptions.configurationError import ConfigurationError
from stratus.exceptions.profileNotFound import ProfileNotFound


GLOBAL_SECTION = 'stratus'
CLOUD_SECTION_PREFIX = 'cloud:'
TEMPLATE_SECTION_PREFIX = 'template:'


class ProfileRegistry(object):
    """
    Cloud and template profiles, as raw (unvalidated) string dicts.

    Profiles are read from an INI file::

        [stratus]
        url = https://scheduler.example.com/

        [cloud:mycloud]
        endpoint = https://keystone.example.com:5000/v3

        [template:mycloud:small]
        image = ubuntu-22.04
    """

    def __init__(self, url: Optional[str] = None,
                 clouds: Optional[Dict[str, Dict[str, str]]] = None,
                 templates: Optional[
                     Dict[Tuple[str, str], Dict[str, str]]] = None) -> None:
        self.url = url
        self._clouds = dict(clouds or {})
        self._templates = dict(templates or {})

    @classmethod
    def from_parser(cls, parser: configparser.ConfigParser) \
            -> 'ProfileRegistry':
        url = parser.get(GLOBAL_SECTION, 'url', fallback=None)

        clouds = {}
        templates = {}

        for section in parser.sections():
            if section.startswith(CLOUD_SECTION_PREFIX):
                name = section[len(CLOUD_SECTION_PREFIX):]

                clouds[name] = dict(parser.items(section))
            elif section.startswith(TEMPLATE_SECTION_PREFIX):
                try:
                    cloud_name, name = \
                        section[len(TEMPLATE_SECTION_PREFIX):].split(':', 1)
                except ValueError:
                    raise ConfigurationError(
                        'Invalid template section [{}], expected'
                        ' [template:CLOUD:NAME]'.format(section))

                templates[(cloud_name, name)] = dict(parser.items(section))
            elif section != GLOBAL_SECTION:
                logging.getLogger(__name__).warning(
                    'Ignoring unknown configuration section [%s]', section)

        for cloud_name, name in templates:
            if cloud_name not in clouds:
                raise ConfigurationError(
                    'Template [{}] refers to undefined cloud [{}]'.format(
                        name, cloud_name))

        return cls(url=url, clouds=clouds, templates=templates)

    @classmethod
    def from_string(cls, text: str) -> 'ProfileRegistry':
        parser = configparser.ConfigParser(interpolation=None)

        try:
            parser.read_string(text)
        except configparser.Error as exc:
            raise ConfigurationError(str(exc))

        return cls.from_parser(parser)

    @classmethod
    def from_file(cls, path: str) -> 'ProfileRegistry':
        parser = configparser.ConfigParser(interpolation=None)

        try:
            with open(path) as fp:
                parser.read_file(fp)
        except OSError as exc:
            raise ConfigurationError(
                'Unable to read configuration file [{}]: {}'.format(
                    path, exc))
        except configparser.Error as exc:
            raise ConfigurationError(str(exc))

        return cls.from_parser(parser)

    def cloud_names(self) -> List[str]:
        return sorted(self._clouds)

    def template_names(self, cloud_name: str) -> List[str]:
        return sorted(name for cloud, name in self._templates
                      if cloud == cloud_name)

    def get_cloud(self, cloud_name: str) -> Dict[str, str]:
        """
        :raises ProfileNotFound:
        """

        try:
            return dict(self._clouds[cloud_name])
        except KeyError:
            raise ProfileNotFound(
                'Cloud [{}] is not configured'.format(cloud_name))

    def get_template(self, cloud_name: str,
                     template_name: str) -> Dict[str, str]:
        """
        :raises ProfileNotFound:
        """

        try:
            return dict(self._templates[(cloud_name, template_name)])
        except KeyError:
            raise ProfileNotFound(
                'Template [{}] is not configured for cloud [{}]'.format(
                    template_name, cloud_name))
