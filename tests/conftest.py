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

import copy
import itertools
import re
from collections import OrderedDict

import pytest
from cinderclient import exceptions as cinder_exceptions
from glanceclient import exc as glance_exceptions
from neutronclient.common import exceptions as neutron_exceptions
from novaclient import exceptions as nova_exceptions

from stratus.resourceAdapter.openstack.clientProvider import (
    OpenstackClients, StaticClientProvider)
from stratus.resourceAdapter.openstack.fingerprint import (
    FINGERPRINT_KEY, instance_fingerprint)
from stratus.resourceAdapter.openstack.openstack import Openstack


INSTALLATION_URL = 'https://stratus.example.com/'

FINGERPRINT = instance_fingerprint(INSTALLATION_URL)


class FakeServer:
    def __init__(self, id, name, status='BUILD', metadata=None, **kwargs):
        self.id = id
        self.name = name
        self.status = status
        self.metadata = dict(metadata or {})
        self.addresses = {}
        self.fault = None

        for key, value in kwargs.items():
            setattr(self, key, value)

    def __repr__(self):
        return 'FakeServer({}, {}, {})'.format(self.id, self.name, self.status)


class FakeFlavor:
    def __init__(self, id, name):
        self.id = id
        self.name = name


class FakeSnapshot:
    def __init__(self, id, name, status='available', created_at='',
                 description=None):
        self.id = id
        self.name = name
        self.status = status
        self.created_at = created_at
        self.description = description


class FakeServerManager:
    def __init__(self, cloud):
        self.cloud = cloud
        self.servers = OrderedDict()

        # Status servers end up in once they leave BUILD
        self.boot_status = 'ACTIVE'

        # Number of get() calls a server stays in BUILD
        self.build_polls = 0

        self.create_calls = []
        self.create_errors = []
        self.get_errors = []
        self.delete_errors = []

        self._ids = itertools.count(1)
        self._pending = {}

    def create(self, name, image, flavor, meta=None, nics=None, **kwargs):
        self.create_calls.append(
            dict(name=name, image=image, flavor=flavor, meta=meta,
                 nics=nics, **kwargs))

        if self.create_errors:
            raise self.create_errors.pop(0)

        server = self.cloud.add_server(
            name, status='BUILD', metadata=meta,
            server_id='server-{}'.format(next(self._ids)))

        self._pending[server.id] = self.build_polls

        return copy.deepcopy(server)

    def get(self, server_id):
        if self.get_errors:
            raise self.get_errors.pop(0)

        server = self.servers.get(server_id)
        if server is None:
            raise nova_exceptions.NotFound(404, 'Server not found')

        if server.status == 'BUILD' and server_id in self._pending:
            if self._pending[server_id] <= 0:
                server.status = self.boot_status

                if self.boot_status == 'ERROR':
                    setattr(server, 'OS-EXT-STS:vm_state', 'error')
                    server.fault = {
                        'code': 500,
                        'message': 'No valid host was found',
                        'details': 'Exceeded max scheduling attempts',
                    }

                del self._pending[server_id]
            else:
                self._pending[server_id] -= 1

        return copy.deepcopy(server)

    def delete(self, server_id):
        if self.delete_errors:
            raise self.delete_errors.pop(0)

        if server_id not in self.servers:
            raise nova_exceptions.NotFound(404, 'Server not found')

        del self.servers[server_id]

        self.cloud.neutron.remove_ports(server_id)

    def list(self, detailed=True, search_opts=None):
        name_re = (search_opts or {}).get('name')

        return [copy.deepcopy(server) for server in self.servers.values()
                if name_re is None or re.search(name_re, server.name)]


class FakeFlavorManager:
    def __init__(self):
        self.flavors = [
            FakeFlavor('1', 'm1.tiny'),
            FakeFlavor('2', 'm1.small'),
        ]

    def list(self):
        return list(self.flavors)


class FakeNova:
    def __init__(self, cloud):
        self.servers = FakeServerManager(cloud)
        self.flavors = FakeFlavorManager()


class FakeNeutron:
    def __init__(self, cloud):
        self.cloud = cloud

        self.networks = [
            {'id': 'net-private', 'name': 'private'},
            {'id': 'net-public', 'name': 'public'},
        ]
        self.ports = []
        self.floatingips = OrderedDict()

        # Whether new floating IPs show up in server addresses
        self.propagate = True

        self.delete_fip_errors = {}

        self._ids = itertools.count(1)

    def add_port(self, device_id):
        port = {'id': 'port-{}'.format(device_id), 'device_id': device_id}

        self.ports.append(port)

        return port

    def remove_ports(self, device_id):
        removed = [port['id'] for port in self.ports
                   if port['device_id'] == device_id]

        self.ports = [port for port in self.ports
                      if port['device_id'] != device_id]

        # Floating IPs outlive the port, they are just disassociated
        for fip in self.floatingips.values():
            if fip['port_id'] in removed:
                fip['port_id'] = None
                fip['fixed_ip_address'] = None

    def list_networks(self, **filters):
        return {'networks': [
            dict(network) for network in self.networks
            if all(network.get(key) == value
                   for key, value in filters.items())
        ]}

    def list_ports(self, device_id=None):
        return {'ports': [dict(port) for port in self.ports
                          if device_id is None or
                          port['device_id'] == device_id]}

    def list_floatingips(self):
        return {'floatingips': [dict(fip)
                                for fip in self.floatingips.values()]}

    def add_floatingip(self, description='', port_id=None):
        index = next(self._ids)

        fip = {
            'id': 'fip-{}'.format(index),
            'floating_ip_address': '203.0.113.{}'.format(index),
            'floating_network_id': 'net-public',
            'port_id': port_id,
            'fixed_ip_address': '10.0.0.{}'.format(index)
                                if port_id else None,
            'description': description,
        }

        self.floatingips[fip['id']] = fip

        return fip

    def create_floatingip(self, body):
        spec = body['floatingip']

        fip = self.add_floatingip(
            description=spec.get('description', ''),
            port_id=spec.get('port_id'))

        if self.propagate and fip['port_id']:
            device_id = next(port['device_id'] for port in self.ports
                             if port['id'] == fip['port_id'])

            server = self.cloud.nova.servers.servers[device_id]
            server.addresses.setdefault('private', []).append({
                'addr': fip['floating_ip_address'],
                'version': 4,
                'OS-EXT-IPS:type': 'floating',
            })

        return {'floatingip': dict(fip)}

    def delete_floatingip(self, fip_id):
        if fip_id in self.delete_fip_errors:
            raise self.delete_fip_errors[fip_id]

        if fip_id not in self.floatingips:
            raise neutron_exceptions.NotFound(
                message='Floating IP {} could not be found'.format(fip_id))

        del self.floatingips[fip_id]


class FakeImageManager:
    def __init__(self):
        self.images = []

    def list(self, filters=None, limit=None):
        images = [dict(image) for image in self.images
                  if all(image.get(key) == value
                         for key, value in (filters or {}).items())]

        return iter(images[:limit] if limit else images)

    def get(self, image_id):
        for image in self.images:
            if image['id'] == image_id:
                return dict(image)

        raise glance_exceptions.HTTPNotFound()


class FakeGlance:
    def __init__(self):
        self.images = FakeImageManager()


class FakeSnapshotManager:
    def __init__(self):
        self.snapshots = []

    def list(self):
        return list(self.snapshots)

    def get(self, snapshot_id):
        for snapshot in self.snapshots:
            if snapshot.id == snapshot_id:
                return snapshot

        raise cinder_exceptions.NotFound(404)


class FakeVolumeManager:
    def __init__(self):
        self.updates = {}

    def update(self, volume_id, **kwargs):
        self.updates[volume_id] = kwargs


class FakeCinder:
    def __init__(self):
        self.volume_snapshots = FakeSnapshotManager()
        self.volumes = FakeVolumeManager()


class FakeCloud:
    """
    In-memory stand-in for the part of nova, neutron, glance and cinder
    the adapter talks to
    """

    def __init__(self):
        self.nova = FakeNova(self)
        self.neutron = FakeNeutron(self)
        self.glance = FakeGlance()
        self.cinder = FakeCinder()

        self._ids = itertools.count(1)

    def clients(self):
        return OpenstackClients(nova=self.nova, neutron=self.neutron,
                                glance=self.glance, cinder=self.cinder)

    def add_server(self, name, status='ACTIVE', metadata=None,
                   server_id=None, owned=False, **kwargs):
        index = next(self._ids)

        if owned:
            metadata = dict(metadata or {}, **{FINGERPRINT_KEY: FINGERPRINT})

        server = FakeServer(server_id or 'existing-{}'.format(index), name,
                            status=status, metadata=metadata, **kwargs)

        server.addresses = {
            'private': [{
                'addr': '10.0.0.{}'.format(100 + index),
                'version': 4,
                'OS-EXT-IPS:type': 'fixed',
            }]
        }

        self.nova.servers.servers[server.id] = server

        self.neutron.add_port(server.id)

        return server


@pytest.fixture
def cloud():
    return FakeCloud()


@pytest.fixture
def openstack(cloud):
    facade = Openstack(
        StaticClientProvider(cloud.clients()), FINGERPRINT, sleeptime=0)

    facade.fip_propagation_interval = 0

    return facade
