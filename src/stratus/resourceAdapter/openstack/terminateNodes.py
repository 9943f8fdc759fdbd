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

# pylint: disable=logging-not-lazy,logging-format-interpolation

import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List

from .launchRequest import RunningNode


class TerminateNodes(object):
    """
    Destroy running nodes, best-effort. Failures are logged and never
    stop termination of the remaining nodes.

    :param get_openstack: returns facade for the named cloud
    """

    def __init__(self, get_openstack: Callable[[str], Any]) -> None:
        self._logger = logging.getLogger('stratus.openstack.terminateNodes')

        self._get_openstack = get_openstack

    def __call__(self, running_nodes: Iterable[RunningNode]) -> None:
        self.apply(running_nodes)

    def apply(self, running_nodes: Iterable[RunningNode]) -> None:
        by_cloud: Dict[str, List[RunningNode]] = OrderedDict()

        for running_node in running_nodes:
            by_cloud.setdefault(running_node.cloud_name, []).append(
                running_node)

        for cloud_name, nodes in by_cloud.items():
            try:
                openstack = self._get_openstack(cloud_name)
            except Exception as exc:  # pylint: disable=broad-except
                self._logger.error(
                    'Unable to terminate {0} server(s) in cloud [{1}]:'
                    ' {2}'.format(len(nodes), cloud_name, exc))

                continue

            for running_node in nodes:
                try:
                    openstack.destroy_server(running_node.node)
                except Exception as exc:  # pylint: disable=broad-except
                    self._logger.error(
                        'Unable to terminate server [{0}] in cloud [{1}]:'
                        ' {2}'.format(running_node.server_id, cloud_name,
                                      exc))
