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

import gevent.pool
import keystoneauth1.exceptions
import mock
import pytest

from stratus.exceptions.allOrNothing import AllOrNothing
from stratus.exceptions.authenticationFailed import AuthenticationFailed
from stratus.resourceAdapter.openstack.launchRequest import (NodePlan,
                                                             RunningNode)
from stratus.resourceAdapter.openstack.provisioning import (
    ProvisionPlannedInstancesAndDestroyAllOnError, RetrySupplierOnException)
from stratus.resourceAdapter.openstack.terminateNodes import TerminateNodes

from .conftest import FakeServer


def test_retry_returns_first_result():
    supplier = mock.Mock(return_value='server')

    assert RetrySupplierOnException(supplier)() == 'server'

    assert supplier.call_count == 1


def test_retry_succeeds_on_last_attempt():
    supplier = mock.Mock(side_effect=[
        RuntimeError('1'), RuntimeError('2'), RuntimeError('3'),
        RuntimeError('4'), 'server'])

    assert RetrySupplierOnException(supplier)() == 'server'

    assert supplier.call_count == 5


def test_retry_gives_up():
    supplier = mock.Mock(side_effect=RuntimeError('boom'))

    assert RetrySupplierOnException(supplier)() is None

    assert supplier.call_count == RetrySupplierOnException.MAX_ATTEMPTS


def test_retry_none_is_not_retried():
    supplier = mock.Mock(return_value=None)

    assert RetrySupplierOnException(supplier)() is None

    assert supplier.call_count == 1


def test_retry_authentication_failure_is_not_retried():
    supplier = mock.Mock(side_effect=AuthenticationFailed('denied'))

    assert RetrySupplierOnException(supplier)() is None

    assert supplier.call_count == 1


def test_retry_session_unauthorized_is_not_retried():
    supplier = mock.Mock(
        side_effect=keystoneauth1.exceptions.Unauthorized('token revoked'))

    assert RetrySupplierOnException(supplier)() is None

    assert supplier.call_count == 1


def _server_supplier(server_id):
    return lambda: FakeServer(server_id, server_id, status='ACTIVE')


def _failing_supplier():
    raise RuntimeError('unable to boot')


def test_provision_all():
    terminate_nodes = mock.Mock()

    provision = ProvisionPlannedInstancesAndDestroyAllOnError(
        gevent.pool.Pool(5), terminate_nodes)

    nodes = provision([
        NodePlan('cloud', 'small', 2, _server_supplier('a')),
        NodePlan('cloud', 'large', 1, _server_supplier('b')),
    ])

    assert len(nodes) == 3

    assert sorted(node.template_name for node in nodes) == \
        ['large', 'small', 'small']

    terminate_nodes.assert_not_called()


def test_provision_all_or_nothing():
    terminate_nodes = mock.Mock()

    failing = mock.Mock(side_effect=_failing_supplier)

    provision = ProvisionPlannedInstancesAndDestroyAllOnError(
        gevent.pool.Pool(5), terminate_nodes)

    with pytest.raises(AllOrNothing) as exc_info:
        provision([
            NodePlan('cloud', 'one', 1, _server_supplier('a')),
            NodePlan('cloud', 'two', 1, failing),
            NodePlan('cloud', 'three', 1, _server_supplier('c')),
        ])

    assert exc_info.value.failed == 1

    terminate_nodes.assert_called_once()

    terminated = terminate_nodes.call_args[0][0]

    assert sorted(node.server_id for node in terminated) == ['a', 'c']
    assert sorted(node.template_name for node in terminated) == \
        ['one', 'three']

    assert failing.call_count == RetrySupplierOnException.MAX_ATTEMPTS


def test_provision_all_or_nothing_terminates_servers(cloud, openstack):
    def boot(name):
        return lambda: cloud.add_server(name, owned=True)

    provision = ProvisionPlannedInstancesAndDestroyAllOnError(
        gevent.pool.Pool(5), TerminateNodes(lambda cloud_name: openstack))

    with pytest.raises(AllOrNothing):
        provision([
            NodePlan('cloud', 'one', 1, boot('a')),
            NodePlan('cloud', 'two', 1, _failing_supplier),
            NodePlan('cloud', 'three', 1, boot('c')),
        ])

    assert openstack.get_running_nodes() == []


def test_provision_none_result_is_failure():
    terminate_nodes = mock.Mock()

    provision = ProvisionPlannedInstancesAndDestroyAllOnError(
        gevent.pool.Pool(5), terminate_nodes)

    with pytest.raises(AllOrNothing):
        provision([
            NodePlan('cloud', 'one', 1, _server_supplier('a')),
            NodePlan('cloud', 'two', 1, lambda: None),
        ])

    terminate_nodes.assert_called_once()

    assert [node.server_id for node in terminate_nodes.call_args[0][0]] == \
        ['a']


def test_running_node_server_id():
    node = RunningNode('cloud', 'small', FakeServer('abc', 'name'))

    assert node.server_id == 'abc'
