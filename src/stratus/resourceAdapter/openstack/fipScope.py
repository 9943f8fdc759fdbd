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

"""
Scope of floating IPs.

Floating IPs do not support tags on older neutron deployments so the
owner and purpose of an IP are kept in its free-text description as a
small JSON object:

    {"stratus-instance": "<fingerprint>", "stratus-scope": "server:<id>"}

Descriptions that do not parse, or that carry a foreign fingerprint, are
not ours and must never be modified or released.
"""

import ast
import json
from typing import Optional

from .fingerprint import FINGERPRINT_KEY


# Neutron limits 'description' to 255 characters
MAX_DESCRIPTION_LENGTH = 255

SCOPE_KEY = 'stratus-scope'

# Key used for the fingerprint by older releases, read but never written
LEGACY_FINGERPRINT_KEY = 'stratus-fingerprint'

SERVER_SCOPE_PREFIX = 'server:'


def server_scope(server_id: str) -> str:
    return SERVER_SCOPE_PREFIX + server_id


def get_description(fingerprint: str, scope: str) -> str:
    """
    Encode fingerprint and scope into floating IP description.

    The scope is clipped if the result would not fit into
    MAX_DESCRIPTION_LENGTH, the fingerprint never is.
    """

    description = _encode(fingerprint, scope)

    while len(description) > MAX_DESCRIPTION_LENGTH and scope:
        overflow = len(description) - MAX_DESCRIPTION_LENGTH

        scope = scope[:-overflow]

        description = _encode(fingerprint, scope)

    return description


def _encode(fingerprint: str, scope: str) -> str:
    return json.dumps({FINGERPRINT_KEY: fingerprint, SCOPE_KEY: scope})


def _parse(description: Optional[str]) -> Optional[dict]:
    if not description:
        return None

    try:
        value = json.loads(description)
    except ValueError:
        # Older releases wrote single-quoted pseudo-JSON
        try:
            value = ast.literal_eval(description)
        except (ValueError, SyntaxError, TypeError, MemoryError,
                RecursionError):
            return None

    return value if isinstance(value, dict) else None


def get_scope(fingerprint: str,
              description: Optional[str]) -> Optional[str]:
    """
    Return scope string recorded in description or None if the
    description does not belong to this installation.
    """

    record = _parse(description)
    if record is None:
        return None

    attached = record.get(FINGERPRINT_KEY)
    legacy = record.get(LEGACY_FINGERPRINT_KEY)

    if attached is None and legacy is None:
        return None

    if attached is not None and attached != fingerprint:
        return None

    if legacy is not None and legacy != fingerprint:
        return None

    scope = record.get(SCOPE_KEY)

    return scope if isinstance(scope, str) else None


def get_server_id(fingerprint: str,
                  description: Optional[str]) -> Optional[str]:
    """
    Return id of the server the floating IP was allocated for

    :raises ValueError: description is ours but the scope is unknown
    """

    scope = get_scope(fingerprint, description)
    if scope is None:
        return None

    if not scope.startswith(SERVER_SCOPE_PREFIX):
        raise ValueError(
            'Unknown scope [{0}] in description [{1}]'.format(
                scope, description))

    return scope[len(SERVER_SCOPE_PREFIX):]
