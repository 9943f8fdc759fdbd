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
import threading
from typing import Any, Callable, Dict, Iterable, List, Set

from neutronclient.common import exceptions as neutron_exceptions

from stratus.exceptions.actionFailed import ActionFailed
from stratus.exceptions.authenticationFailed import AuthenticationFailed


class FipCleaner(object):
    """
    Release floating IPs leaked by this installation.

    An IP is only released once it was found free on two consecutive
    passes, as a freshly allocated IP is not attached to its server yet.
    """

    def __init__(self, get_openstack: Callable[[str], Any]) -> None:
        self._logger = logging.getLogger('stratus.openstack.cleanup')

        self._get_openstack = get_openstack

        # Cloud name to ids of floating IPs found free on the last pass
        self._still_free: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def clean_orphaned_fips(self, cloud_names: Iterable[str]) \
            -> Dict[str, List[str]]:
        """
        :returns: ids of released floating IPs per cloud
        """

        released = {}

        for cloud_name in cloud_names:
            try:
                released[cloud_name] = self._clean_cloud(cloud_name)
            except AuthenticationFailed as exc:
                self._logger.warning(
                    'Unable to authenticate to [%s]: %s', cloud_name, exc)
            except Exception:  # pylint: disable=broad-except
                self._logger.exception(
                    'Unable to perform the cleanup of [%s]', cloud_name)

        return released

    def _clean_cloud(self, cloud_name: str) -> List[str]:
        openstack = self._get_openstack(cloud_name)

        free = set(openstack.get_free_fip_ids())

        with self._lock:
            leaked = free & self._still_free.get(cloud_name, set())

            self._still_free[cloud_name] = free - leaked

        released = []

        for fip_id in sorted(leaked):
            try:
                openstack.destroy_fip(fip_id)
            except ActionFailed as exc:
                # Tenant is likely reusing pre-allocated IPs without
                # permission to (de)allocate them
                if isinstance(exc.__cause__, neutron_exceptions.Forbidden):
                    continue

                self._logger.warning(
                    'Unable to release leaked floating IP [%s]: %s',
                    fip_id, exc)

                continue

            self._logger.info(
                'Released leaked floating IP [%s] in [%s]', fip_id,
                cloud_name)

            released.append(fip_id)

        return released
