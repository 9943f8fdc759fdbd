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

import enum
import logging
from typing import Any, Callable

from stratus.exceptions.cloudGone import CloudGone
from stratus.exceptions.profileNotFound import ProfileNotFound
from stratus.exceptions.resourceNotFound import ResourceNotFound


class State(enum.Enum):
    PURGED = 'purged'
    FAILED_WILL_RETRY = 'failed_will_retry'


class DestroyMachine(object):
    """
    Disposal of a single server, identified by cloud name and server id.

    Destroying a server that is already gone succeeds. Failures are left
    for the caller to retry.
    """

    def __init__(self, cloud_name: str, server_id: str,
                 get_openstack: Callable[[str], Any]) -> None:
        self._logger = logging.getLogger('stratus.openstack.destroyMachine')

        self.cloud_name = cloud_name
        self.server_id = server_id
        self._get_openstack = get_openstack

    def dispose(self) -> State:
        """
        :raises CloudGone: cloud is not configured anymore
        :raises ActionFailed: server could not be looked up or destroyed
        :raises AuthenticationFailed:
        """

        try:
            # Facades are thread-scoped, never keep one around
            openstack = self._get_openstack(self.cloud_name)
        except ProfileNotFound as exc:
            raise CloudGone(
                'Cloud [{}] of machine [{}] does not exist anymore'.format(
                    self.cloud_name, self.server_id)) from exc

        try:
            server = openstack.get_server_by_id(self.server_id)
        except ResourceNotFound:
            self._logger.debug(
                'Machine [%s] already gone', self.server_id)

            return State.PURGED

        openstack.destroy_server(server)

        return State.PURGED

    @property
    def display_name(self) -> str:
        return 'Openstack {} machine {}'.format(
            self.cloud_name, self.server_id)

    def __eq__(self, other):
        return isinstance(other, DestroyMachine) and \
            (self.cloud_name, self.server_id) == \
            (other.cloud_name, other.server_id)

    def __hash__(self):
        return hash((self.cloud_name, self.server_id))
