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

import uuid
from typing import Optional

from stratus.exceptions.configurationError import ConfigurationError


# Metadata key recording the template a server was created from
TEMPLATE_KEY = 'stratus-template'


def generate_server_name(template_name: str) -> str:
    """Unique server name derived from template name"""
    return '{}-{}'.format(template_name, uuid.uuid4().hex[:8])


def read_user_data(path: Optional[str]) -> Optional[str]:
    if not path:
        return None

    try:
        with open(path) as fp:
            return fp.read()
    except OSError as exc:
        raise ConfigurationError(
            'Unable to read user data from [{}]: {}'.format(path, exc))
