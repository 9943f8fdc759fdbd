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
from novaclient import exceptions as nova_exceptions

from stratus.exceptions.allOrNothing import AllOrNothing
from stratus.exceptions.cloudGone import CloudGone
from stratus.exceptions.configurationError import ConfigurationError
from stratus.exceptions.instanceCapReached import InstanceCapReached
from stratus.exceptions.invalidArgument import InvalidArgument
from stratus.resourceAdapter.openstack import OpenstackAdapter
from stratus.resourceAdapter.openstack.clientProvider import OpenstackFactory
from stratus.resourceAdapter.openstack.destroyMachine import State
from stratus.resourceAdapter.openstack.fingerprint import get_metadata
from stratus.resourceAdapter.openstack.helpers import TEMPLATE_KEY
from stratus.resourceAdapter.openstack.openstack import (
    Openstack, get_access_ip_address)
from stratus.resourceAdapterConfiguration.profiles import ProfileRegistry

from .conftest import FINGERPRINT, INSTALLATION_URL


CONFIG = """
[stratus]
url = {url}

[cloud:mycloud]
endpoint = https://keystone.example.com:5000/v3
username = ci
password = secret
project_name = ci
instance_cap = 4

[template:mycloud:small]
image = ubuntu
flavor = m1.small
network = private
floating_ip_pool = public
tags = owner=ci
instance_cap = 3

[template:mycloud:plain]
image = ubuntu
flavor = m1.tiny
""".format(url=INSTALLATION_URL)


@pytest.fixture
def adapter(openstack):
    return OpenstackAdapter(
        ProfileRegistry.from_string(CONFIG),
        factory=OpenstackFactory(lambda spec: openstack),
        pool=gevent.pool.Pool(5))


@pytest.fixture
def image(cloud):
    cloud.glance.images.images = [
        {'id': 'img-1', 'name': 'ubuntu', 'status': 'active'}]


def test_fingerprint(adapter):
    assert adapter.fingerprint == FINGERPRINT


def test_fingerprint_requires_url():
    adapter = OpenstackAdapter(ProfileRegistry())

    with pytest.raises(ConfigurationError):
        adapter.fingerprint


def test_start(adapter, cloud, image):
    nodes = adapter.start('mycloud', 'small', 2)

    assert len(nodes) == 2

    for node in nodes:
        assert node.cloud_name == 'mycloud'
        assert node.template_name == 'small'

        metadata = get_metadata(node.node)

        assert metadata[TEMPLATE_KEY] == 'small'
        assert metadata['owner'] == 'ci'

        assert get_access_ip_address(node.node).startswith('203.0.113.')

    create_call = cloud.nova.servers.create_calls[0]

    assert create_call['image'] == 'img-1'
    assert create_call['flavor'] == '2'
    assert create_call['nics'] == [{'net-id': 'net-private'}]


def test_start_without_floating_ip(adapter, cloud, image):
    nodes = adapter.start('mycloud', 'plain', 1)

    assert len(nodes) == 1

    assert not cloud.neutron.floatingips


def test_start_invalid_count(adapter):
    with pytest.raises(InvalidArgument):
        adapter.start('mycloud', 'small', 0)


def test_start_cloud_cap(adapter, cloud, image):
    for index in range(3):
        cloud.add_server('other-{}'.format(index), owned=True)

    with pytest.raises(InstanceCapReached):
        adapter.start('mycloud', 'plain', 2)

    assert not cloud.nova.servers.create_calls


def test_start_template_cap(adapter, cloud, image):
    cloud.add_server('small-1', owned=True, metadata={TEMPLATE_KEY: 'small'})
    cloud.add_server('small-2', owned=True, metadata={TEMPLATE_KEY: 'small'})

    with pytest.raises(InstanceCapReached):
        adapter.start('mycloud', 'small', 2)

    # other templates are still fine
    adapter.start('mycloud', 'plain', 1)


def test_start_all_or_nothing(adapter, cloud, image):
    cloud.nova.servers.boot_status = 'ERROR'

    with pytest.raises(AllOrNothing):
        adapter.start('mycloud', 'plain', 2)

    assert not cloud.nova.servers.servers


def test_start_floating_ip_failure_destroys_server(adapter, cloud, image):
    cloud.neutron.networks = [{'id': 'net-private', 'name': 'private'}]

    with pytest.raises(AllOrNothing):
        adapter.start('mycloud', 'small', 1)

    assert not cloud.nova.servers.servers


def test_delete_node(adapter, cloud, image):
    nodes = adapter.start('mycloud', 'small', 2)

    adapter.deleteNode(nodes)

    assert not cloud.nova.servers.servers
    assert not cloud.neutron.floatingips


def test_dispose_one(adapter, cloud):
    server = cloud.add_server('a', owned=True)

    assert adapter.dispose_one('mycloud', server.id) == State.PURGED

    assert adapter.dispose_one('mycloud', server.id) == State.PURGED


def test_dispose_one_failure(adapter, cloud):
    server = cloud.add_server('a', owned=True)

    cloud.nova.servers.delete_errors = [
        nova_exceptions.ClientException(500, 'delete failed')]

    assert adapter.dispose_one('mycloud', server.id) == \
        State.FAILED_WILL_RETRY

    assert adapter.dispose_one('mycloud', server.id) == State.PURGED


def test_dispose_one_lookup_failure(adapter, cloud):
    server = cloud.add_server('a', owned=True)

    cloud.nova.servers.get_errors = [
        keystoneauth1.exceptions.ConnectFailure('connection refused')]

    assert adapter.dispose_one('mycloud', server.id) == \
        State.FAILED_WILL_RETRY

    assert adapter.dispose_one('mycloud', server.id) == State.PURGED


def test_dispose_one_cloud_gone(adapter):
    with pytest.raises(CloudGone):
        adapter.dispose_one('removed', 'id')


def test_sanity_check(adapter):
    assert adapter.sanity_check('mycloud') is None

    assert isinstance(adapter.sanity_check('removed'), Exception)


def test_list_running(adapter, cloud):
    server = cloud.add_server('a', owned=True)
    cloud.add_server('b')

    assert [node.id for node in adapter.list_running('mycloud')] == \
        [server.id]


def test_facade_is_shared(openstack):
    create = mock.Mock(return_value=openstack)

    adapter = OpenstackAdapter(
        ProfileRegistry.from_string(CONFIG),
        factory=OpenstackFactory(create))

    assert adapter.get_openstack('mycloud') is openstack
    assert adapter.get_openstack('mycloud') is openstack

    assert create.call_count == 1


def test_create_openstack(adapter):
    spec = adapter.get_connection_spec(adapter.get_config('mycloud'))

    with mock.patch(
            'stratus.resourceAdapter.openstack.adapter.SessionClientProvider'
    ) as provider:
        facade = adapter._create_openstack(spec)

    provider.assert_called_once_with(
        'https://keystone.example.com:5000/v3', spec.credential,
        region=None, verify=True, timeout=20)

    assert isinstance(facade, Openstack)
    assert facade.fingerprint == FINGERPRINT
    assert facade.sleeptime == 5


def test_cleanup_leaked_fips(adapter, cloud, openstack):
    server = cloud.add_server('a', owned=True)

    openstack.assign_floating_ip(server, 'public')

    # server is gone but its floating IP stays around
    cloud.nova.servers.delete(server.id)

    assert adapter.cleanup_leaked_fips() == {'mycloud': []}
    assert adapter.cleanup_leaked_fips() == {'mycloud': ['fip-1']}

    assert not cloud.neutron.floatingips
