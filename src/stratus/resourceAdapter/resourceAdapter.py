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

import logging
from typing import Any, Dict, List, Optional

from stratus.resourceAdapterConfiguration.profiles import ProfileRegistry
from stratus.resourceAdapterConfiguration.settings import (BaseSetting,
                                                           validate_config)


class ResourceAdapter(object):
    """
    Base class for resource adapters.

    Subclasses declare the schema of cloud profiles in 'settings' and of
    templates in 'template_settings'.
    """

    __adaptername__: Optional[str] = None

    settings: Dict[str, BaseSetting] = {}

    template_settings: Dict[str, BaseSetting] = {}

    def __init__(self, registry: ProfileRegistry) -> None:
        self._logger = logging.getLogger(
            'stratus.resourceAdapter.{}'.format(self.__adaptername__))

        self._registry = registry

    @property
    def registry(self) -> ProfileRegistry:
        return self._registry

    def _load_config_from_registry(self, cloud_name: str) -> Dict[str, str]:
        return self._registry.get_cloud(cloud_name)

    def _load_template_config_from_registry(
            self, cloud_name: str, template_name: str) -> Dict[str, str]:
        return self._registry.get_template(cloud_name, template_name)

    def get_config(self, cloud_name: str) -> Dict[str, Any]:
        """
        Get validated configuration of the cloud profile

        :raises ProfileNotFound:
        :raises ConfigurationError:
        """

        config = validate_config(
            self.settings, self._load_config_from_registry(cloud_name))

        self.process_config(config)

        return config

    def get_template_config(self, cloud_name: str,
                            template_name: str) -> Dict[str, Any]:
        """
        :raises ProfileNotFound:
        :raises ConfigurationError:
        """

        config = validate_config(
            self.template_settings,
            self._load_template_config_from_registry(
                cloud_name, template_name))

        self.process_template_config(config)

        return config

    def process_config(self, config: Dict[str, Any]) -> None:
        pass

    def process_template_config(self, config: Dict[str, Any]) -> None:
        pass

    def start(self, cloud_name: str, template_name: str,
              count: int) -> List[Any]:
        raise NotImplementedError

    def deleteNode(self, nodes: List[Any]) -> None:
        raise NotImplementedError
