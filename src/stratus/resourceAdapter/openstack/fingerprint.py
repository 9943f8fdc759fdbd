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

import hashlib
from typing import Any, Optional

from stratus.exceptions.configurationError import ConfigurationError


# Server metadata key holding the fingerprint of the installation that
# created the server
FINGERPRINT_KEY = 'stratus-instance'


def instance_fingerprint(installation_url: Optional[str]) -> str:
    """
    Identification for servers launched by this installation.

    Derived from the externally visible URL of the installation, which is
    expected to be stable for its lifetime.

    :raises ConfigurationError: installation URL is not configured
    """

    if not installation_url or not installation_url.strip():
        # Carrying on would tag servers with a bogus owner and break the
        # filtering of every listing
        raise ConfigurationError('Installation URL is not configured')

    return hashlib.sha256(
        installation_url.strip().encode('utf-8')).hexdigest()


def get_metadata(server: Any) -> dict:
    return getattr(server, 'metadata', None) or {}


def is_owned(server: Any, fingerprint: str) -> bool:
    """
    Return True if server carries exactly our fingerprint
    """

    value = get_metadata(server).get(FINGERPRINT_KEY)

    return bool(value) and value == fingerprint
