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
from typing import Any, Callable, Iterable, List, Optional

import gevent
import gevent.pool

from stratus.exceptions.allOrNothing import AllOrNothing
from stratus.exceptions.authenticationFailed import AuthenticationFailed
from stratus.exceptions.configurationError import ConfigurationError

from .launchRequest import NodePlan, RunningNode
from .openstack import is_unauthorized


class RetrySupplierOnException(object):
    """
    Call the supplier until it produces a server, at most MAX_ATTEMPTS
    times. Attempts follow each other immediately.

    Never raises; None signals that no server was created. A supplier
    returning None is not retried.
    """

    MAX_ATTEMPTS = 5

    # Retrying these can not help
    FATAL_EXCEPTIONS = (AuthenticationFailed, ConfigurationError)

    def __init__(self, supplier: Callable[[], Any],
                 description: str = '') -> None:
        self._logger = logging.getLogger('stratus.openstack.provisioning')

        self.supplier = supplier
        self.description = description

    def __call__(self) -> Optional[Any]:
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                return self.supplier()
            except Exception as exc:  # pylint: disable=broad-except
                if isinstance(exc, self.FATAL_EXCEPTIONS) or \
                        is_unauthorized(exc):
                    self._logger.error(
                        'Unable to create node {0}: {1}'.format(
                            self.description, exc))

                    return None

                self._logger.warning(
                    'Exception creating a node {0} (attempt {1}/{2}):'
                    ' {3}'.format(self.description, attempt,
                                  self.MAX_ATTEMPTS, exc),
                    exc_info=True)

        return None


class ProvisionPlannedInstancesAndDestroyAllOnError(object):
    """
    Provision all planned servers concurrently. Either every one of them
    is created, or those that were are terminated and AllOrNothing is
    raised.

    :param pool: worker pool the creations run in
    :param terminate_nodes: called with the created nodes on failure
    """

    def __init__(self, pool: gevent.pool.Pool,
                 terminate_nodes: Callable[[List[RunningNode]], None]) \
            -> None:
        self._logger = logging.getLogger('stratus.openstack.provisioning')

        self._pool = pool
        self._terminate_nodes = terminate_nodes

    def __call__(self, node_plans: Iterable[NodePlan]) -> List[RunningNode]:
        return self.apply(node_plans)

    def apply(self, node_plans: Iterable[NodePlan]) -> List[RunningNode]:
        """
        :raises AllOrNothing:
        """

        launches = []

        for node_plan in node_plans:
            for index in range(node_plan.count):
                self._logger.info(
                    'Queuing cloud instance: #{0} {1}, {2} {3}'.format(
                        index, node_plan.count, node_plan.cloud_name,
                        node_plan.template_name))

                description = '#{0} {1}, {2} {3}'.format(
                    index, node_plan.count, node_plan.cloud_name,
                    node_plan.template_name)

                greenlet = self._pool.spawn(RetrySupplierOnException(
                    node_plan.node_supplier, description))

                launches.append((node_plan, description, greenlet))

        # Block until all complete
        gevent.joinall([greenlet for _, _, greenlet in launches])

        running_nodes = []

        failed_launches = 0

        for node_plan, description, greenlet in launches:
            if not greenlet.successful():
                failed_launches += 1

                self._logger.error(
                    'Error while launching instance: {0}: {1}'.format(
                        description, greenlet.exception))
            elif greenlet.value is None:
                failed_launches += 1

                self._logger.error(
                    'Unable to launch instance: {0}'.format(description))
            else:
                running_nodes.append(RunningNode(
                    node_plan.cloud_name, node_plan.template_name,
                    greenlet.value))

        if failed_launches:
            self._terminate_nodes(running_nodes)

            raise AllOrNothing(
                '{0} of {1} instance(s) failed to launch'.format(
                    failed_launches, len(launches)),
                failed=failed_launches, terminated=running_nodes)

        return running_nodes
