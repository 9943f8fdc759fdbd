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

import enum
import itertools
import logging
import re
from typing import Any, Dict, Iterator, List, Optional

import gevent
import keystoneauth1.exceptions
from cinderclient import exceptions as cinder_exceptions
from glanceclient import exc as glance_exceptions
from neutronclient.common import exceptions as neutron_exceptions
from novaclient import exceptions as nova_exceptions

from stratus.exceptions.actionFailed import ActionFailed
from stratus.exceptions.authenticationFailed import AuthenticationFailed
from stratus.exceptions.invalidAddress import InvalidAddress
from stratus.exceptions.operationFailed import OperationFailed
from stratus.exceptions.provisionFailed import ProvisionFailed
from stratus.exceptions.resourceNotFound import ResourceNotFound

from .cache import CachedData, CachedFunction
from .clientProvider import ClientProvider, OpenstackClients
from .fingerprint import FINGERPRINT_KEY, is_owned
from .fipScope import get_description, get_server_id, server_scope
from .launchRequest import ServerCreateRequest


logger = logging.getLogger(__name__)

UUID_RE = re.compile(r'^[0-9a-f-]{36}$')


class ServerStatus(enum.Enum):
    ACTIVE = 'ACTIVE'
    BUILD = 'BUILD'
    DELETED = 'DELETED'
    ERROR = 'ERROR'
    HARD_REBOOT = 'HARD_REBOOT'
    MIGRATING = 'MIGRATING'
    PASSWORD = 'PASSWORD'
    PAUSED = 'PAUSED'
    REBOOT = 'REBOOT'
    REBUILD = 'REBUILD'
    RESCUE = 'RESCUE'
    RESIZE = 'RESIZE'
    REVERT_RESIZE = 'REVERT_RESIZE'
    SHELVED = 'SHELVED'
    SHELVED_OFFLOADED = 'SHELVED_OFFLOADED'
    SHUTOFF = 'SHUTOFF'
    SOFT_DELETED = 'SOFT_DELETED'
    SUSPENDED = 'SUSPENDED'
    UNKNOWN = 'UNKNOWN'
    VERIFY_RESIZE = 'VERIFY_RESIZE'

    # Anything nova reports that is not listed above
    UNRECOGNIZED = None

    @classmethod
    def of(cls, server: Any) -> 'ServerStatus':
        status = getattr(server, 'status', None)

        try:
            return cls(status.upper() if status else status)
        except ValueError:
            return cls.UNRECOGNIZED


# Statuses in which a server is not considered to consume capacity
NOT_OCCUPIED_STATUSES = (
    ServerStatus.SHUTOFF,
    ServerStatus.DELETED,
    ServerStatus.MIGRATING,
)


def is_occupied(server: Any) -> bool:
    """
    Determine whether the server is considered occupied
    """

    status = ServerStatus.of(server)

    if status in NOT_OCCUPIED_STATUSES:
        return False

    if status in (ServerStatus.UNKNOWN, ServerStatus.UNRECOGNIZED):
        # counted as occupied so the machine is never leaked
        logger.warning(
            'Server [{0}] in unrecognized state [{1}]; treating as'
            ' occupied'.format(
                getattr(server, 'id', None),
                getattr(server, 'status', None)))

    return True


def iter_addresses(server: Any) -> Iterator[Dict[str, Any]]:
    addresses = getattr(server, 'addresses', None) or {}

    return itertools.chain.from_iterable(addresses.values())


def get_access_ip_address(server: Any) -> str:
    """
    Extract address used to access the server.

    Floating addresses are preferred over fixed ones and IPv4 over IPv6.

    :raises InvalidAddress: unknown IP protocol version reported
    :raises ResourceNotFound: no suitable address found
    """

    floating_ipv6 = None
    fixed_ipv4 = None
    fixed_ipv6 = None

    for address in iter_addresses(server):
        version = address.get('version')

        if version not in (4, 6):
            raise InvalidAddress(
                'Unknown or unsupported IP protocol version: {0}'.format(
                    version))

        if address.get('OS-EXT-IPS:type') == 'floating':
            if version == 4:
                # most favourable option
                return address['addr']

            if floating_ipv6 is None:
                floating_ipv6 = address['addr']
        elif version == 4:
            if fixed_ipv4 is None:
                fixed_ipv4 = address['addr']
        elif fixed_ipv6 is None:
            fixed_ipv6 = address['addr']

    for candidate in (floating_ipv6, fixed_ipv4, fixed_ipv6):
        if candidate is not None:
            return candidate

    raise ResourceNotFound(
        'No access IP address found for [{0}]: {1}'.format(
            getattr(server, 'name', None),
            getattr(server, 'addresses', None)))


# Errors the session itself raises (token renewal, connection) on top of
# those raised by the individual API clients
NOVA_ERRORS = (nova_exceptions.ClientException,
               keystoneauth1.exceptions.ClientException)

NEUTRON_ERRORS = (neutron_exceptions.NeutronClientException,
                  keystoneauth1.exceptions.ClientException)


def is_unauthorized(exc: BaseException) -> bool:
    return isinstance(exc, (
        nova_exceptions.Unauthorized,
        neutron_exceptions.Unauthorized,
        keystoneauth1.exceptions.Unauthorized,
    ))


class Openstack(object):
    """
    Thread-safe facade of an OpenStack tenant.

    Servers are tagged with the fingerprint of this installation when
    created. Every listing is filtered on it so the facade pretends there
    are no other servers in the tenant than those it started itself.

    :param client_provider: source of (fresh) API clients
    :param fingerprint: identification of this installation
    :param sleeptime: seconds between polls while waiting for a server
    """

    DEFAULT_SLEEP_TIME = 5

    # Seconds to keep results of image/flavor/network lookups
    LOOKUP_CACHE_TTL = 60

    FIP_PROPAGATION_ATTEMPTS = 30

    FIP_PROPAGATION_INTERVAL = 1.0

    def __init__(self, client_provider: ClientProvider, fingerprint: str,
                 sleeptime: float = DEFAULT_SLEEP_TIME) -> None:
        self._logger = logging.getLogger('stratus.openstack')

        self._clients = client_provider
        self.fingerprint = fingerprint
        self.sleeptime = sleeptime
        self.fip_propagation_interval = self.FIP_PROPAGATION_INTERVAL

        self._images = CachedData(
            self._list_all_images, self.LOOKUP_CACHE_TTL)
        self._flavors = CachedData(
            self._list_flavors, self.LOOKUP_CACHE_TTL)
        self._networks = CachedData(
            self._list_networks, self.LOOKUP_CACHE_TTL)
        self._volume_snapshots = CachedData(
            self._list_volume_snapshots, self.LOOKUP_CACHE_TTL)
        self._image_ids = CachedFunction(
            self._find_image_ids, self.LOOKUP_CACHE_TTL)

    def clients(self) -> OpenstackClients:
        return self._clients.get()

    def get_info(self) -> str:
        """
        Get information about OpenStack deployment
        """

        return self._clients.get_info()

    #
    # Lookups
    #

    def _list_networks(self) -> List[dict]:
        return self.clients().neutron.list_networks()['networks']

    def get_networks(self, name_or_ids: List[str]) -> Dict[str, dict]:
        """
        Resolve network names or ids

        :returns: map of network id to network
        :raises ResourceNotFound: some of the networks do not exist
        """

        if not name_or_ids:
            return {}

        pending = list(name_or_ids)

        result = {}

        for network in self._networks.get():
            if network.get('name') in pending:
                result[network['id']] = network
                pending = [item for item in pending
                           if item != network.get('name')]
            elif network['id'] in pending:
                result[network['id']] = network
                pending = [item for item in pending
                           if item != network['id']]

            if not pending:
                break

        if pending:
            raise ResourceNotFound(
                'Unable to find networks for: {0}'.format(pending))

        return result

    def _list_flavors(self) -> List[Any]:
        return sorted(self.clients().nova.flavors.list(),
                      key=lambda flavor: flavor.name or '')

    def get_sorted_flavors(self) -> List[Any]:
        return self._flavors.get()

    def get_flavor_id(self, name_or_id: str) -> str:
        """
        :raises ResourceNotFound:
        """

        for flavor in self._flavors.get():
            if name_or_id in (flavor.id, flavor.name):
                return flavor.id

        raise ResourceNotFound(
            'Flavor [{0}] does not exist'.format(name_or_id))

    def _list_all_images(self) -> List[dict]:
        # glanceclient pages through the results on its own
        return list(self.clients().glance.images.list())

    @staticmethod
    def _image_sort_key(image: dict):
        return (image.get('updated_at') or '',
                image.get('created_at') or '',
                image['id'])

    def get_images(self) -> Dict[str, List[dict]]:
        """
        Finds all images.

        :returns: images indexed by name (or id if the image has no name);
                  images sharing a name are sorted oldest first
        """

        data: Dict[str, List[dict]] = {}

        for image in self._images.get():
            data.setdefault(image.get('name') or image['id'], []).append(
                image)

        for same_named in data.values():
            same_named.sort(key=self._image_sort_key)

        return dict(sorted(data.items(), key=lambda item: item[0].lower()))

    def _find_image_ids(self, name_or_id: str) -> List[str]:
        glance = self.clients().glance

        found = {
            image['id']: image
            for image in glance.images.list(
                filters={'name': name_or_id, 'status': 'active'})
        }

        if UUID_RE.match(name_or_id):
            try:
                image = glance.images.get(name_or_id)
            except glance_exceptions.HTTPNotFound:
                image = None

            if image is not None and image.get('status') == 'active':
                found[image['id']] = image

        return [image['id']
                for image in sorted(found.values(),
                                    key=self._image_sort_key)]

    def get_image_ids_for(self, name_or_id: str) -> List[str]:
        """
        Finds ids of all active images with the given name or id, oldest
        first.
        """

        return self._image_ids.get(name_or_id)

    def _list_volume_snapshots(self) -> List[Any]:
        return list(self.clients().cinder.volume_snapshots.list())

    @staticmethod
    def _snapshot_sort_key(snapshot: Any):
        return (getattr(snapshot, 'created_at', None) or '', snapshot.id)

    def get_volume_snapshots(self) -> Dict[str, List[Any]]:
        """
        Finds all available volume snapshots, indexed by name (or id)
        """

        data: Dict[str, List[Any]] = {}

        for snapshot in self._volume_snapshots.get():
            if snapshot.status != 'available':
                continue

            data.setdefault(snapshot.name or snapshot.id, []).append(
                snapshot)

        for same_named in data.values():
            same_named.sort(key=self._snapshot_sort_key)

        return data

    def get_volume_snapshot_ids_for(self, name_or_id: str) -> List[str]:
        found = {
            snapshot.id: snapshot
            for snapshot in self.get_volume_snapshots().get(name_or_id, [])
        }

        if UUID_RE.match(name_or_id):
            try:
                snapshot = self.clients().cinder.volume_snapshots.get(
                    name_or_id)
            except cinder_exceptions.NotFound:
                snapshot = None

            if snapshot is not None and snapshot.status == 'available':
                found[snapshot.id] = snapshot

        return [snapshot.id
                for snapshot in sorted(found.values(),
                                       key=self._snapshot_sort_key)]

    def get_volume_snapshot_description(self, snapshot_id: str) \
            -> Optional[str]:
        return self.clients().cinder.volume_snapshots.get(
            snapshot_id).description

    def set_volume_name_and_description(self, volume_id: str, name: str,
                                        description: str) -> None:
        """
        :raises ActionFailed:
        """

        try:
            self.clients().cinder.volumes.update(
                volume_id, name=name, description=description)
        except cinder_exceptions.ClientException as exc:
            raise ActionFailed(
                'Unable to update volume [{0}]: {1}'.format(
                    volume_id, exc)) from exc

    #
    # Servers
    #

    def get_running_nodes(self) -> List[Any]:
        """
        List servers owned by this installation which occupy capacity
        """

        return [
            server
            for server in self.clients().nova.servers.list(detailed=True)
            if is_owned(server, self.fingerprint) and is_occupied(server)
        ]

    def get_server_by_id(self, server_id: str) -> Any:
        """
        :raises ResourceNotFound: no such server
        :raises ActionFailed: server could not be looked up
        :raises AuthenticationFailed:
        """

        try:
            return self.clients().nova.servers.get(server_id)
        except nova_exceptions.NotFound:
            raise ResourceNotFound(
                'No such server running: {0}'.format(server_id))
        except NOVA_ERRORS as exc:
            if is_unauthorized(exc):
                raise AuthenticationFailed(str(exc)) from exc

            raise ActionFailed(
                'Unable to look up server [{0}]: {1}'.format(
                    server_id, exc)) from exc

    def get_servers_by_name(self, name: str) -> List[Any]:
        servers = self.clients().nova.servers.list(
            detailed=True,
            search_opts={'name': '^{0}$'.format(re.escape(name))})

        return [server for server in servers
                if server.name == name and
                is_owned(server, self.fingerprint)]

    def update_info(self, server: Any) -> Any:
        """
        Fetch updated info about the server
        """

        return self.get_server_by_id(server.id)

    def boot_and_wait_active(self, request: ServerCreateRequest,
                             timeout: float) -> Any:
        """
        Provision server and wait until it is ACTIVE.

        :raises ProvisionFailed: server was not provisioned or ended up in
                                 erroneous state; it is deleted in such case
        :raises AuthenticationFailed:
        """

        self._logger.debug('Booting machine [{0}]'.format(request.name))

        request.add_metadata_item(FINGERPRINT_KEY, self.fingerprint)

        try:
            nova = self.clients().nova

            server = nova.servers.create(**request.kwargs())
        except NOVA_ERRORS as exc:
            raise self._provision_error(request.name, exc) from exc

        try:
            server = self._wait_active(nova, server, timeout)
        except Exception as exc:  # pylint: disable=broad-except
            err = self._provision_error(request.name, exc)

            # the server exists by now, it must not outlive the failure
            try:
                self.destroy_server(server)
            except ActionFailed as destroy_exc:
                err.add_suppressed(destroy_exc)

            raise err from exc

        if server is None:
            self._cleanup_timed_out(request.name, timeout)

        self._logger.debug('Machine started: [{0}]'.format(server.name))

        self._raise_if_failed(server)

        return server

    @staticmethod
    def _provision_error(name: str, exc: Exception) -> OperationFailed:
        if is_unauthorized(exc):
            return AuthenticationFailed(str(exc))

        return ProvisionFailed(
            'Failed to provision [{0}]: {1}'.format(name, exc))

    def _wait_active(self, nova: Any, server: Any,
                     timeout: float) -> Optional[Any]:
        """
        Returns server once it leaves BUILD state or None if it did not do
        so within 'timeout' seconds
        """

        total_sleep_time = 0.0

        while True:
            try:
                server = nova.servers.get(server.id)
            except nova_exceptions.NotFound as exc:
                # Server may not be visible right after it was created
                self._logger.debug(
                    'Ignoring exception raised while updating server'
                    ' [{0}]: {1}'.format(server.id, exc))
            else:
                if ServerStatus.of(server) != ServerStatus.BUILD:
                    return server

            if total_sleep_time >= timeout:
                return None

            gevent.sleep(self.sleeptime)

            total_sleep_time += self.sleeptime

    def _cleanup_timed_out(self, name: str, timeout: float) -> None:
        servers = self.get_servers_by_name(name)

        err = ProvisionFailed(
            'Failed to provision [{0}] in time ({1}s). Existing'
            ' server(s): {2}'.format(
                name, timeout, [server.id for server in servers]))

        # No id to rely on; only destroy when the match is unambiguous
        if len(servers) == 1:
            try:
                self.destroy_server(servers[0])
            except Exception as exc:  # pylint: disable=broad-except
                err.add_suppressed(exc)
        elif len(servers) > 1:
            self._logger.warning(
                'Unable to destroy server [{0}] as there are {1} of'
                ' them'.format(name, len(servers)))

        raise err

    def _raise_if_failed(self, server: Any) -> None:
        status = ServerStatus.of(server)
        if status == ServerStatus.ACTIVE:
            return

        fault = getattr(server, 'fault', None)

        fault_msg = 'none' if not fault else '{0}: {1} ({2})'.format(
            fault.get('code'), fault.get('message'), fault.get('details'))

        err = ProvisionFailed(
            'Failed to boot server [{0}]: status={1} vmState={2}'
            ' fault={3}'.format(
                server.name, server.status,
                getattr(server, 'OS-EXT-STS:vm_state', None), fault_msg))

        try:
            self.destroy_server(server)
        except ActionFailed as exc:
            err.add_suppressed(exc)

        self._logger.warning(
            'Machine provisioning failed: [{0}]'.format(server.id),
            exc_info=err)

        raise err

    def _get_server_ports(self, clients: OpenstackClients,
                          server_id: str) -> List[dict]:
        return clients.neutron.list_ports(device_id=server_id)['ports']

    def destroy_server(self, server: Any) -> None:
        """
        Delete server along with floating IPs attached to it.

        Deleting a server that is already gone is not an error. Deletion
        tends to fail a couple of times before it succeeds; use
        DestroyMachine to destroy the server reliably.

        :raises ActionFailed: first failure encountered
        """

        server_id = server.id

        clients = self.clients()

        failures: List[ActionFailed] = []

        try:
            port_ids = [port['id']
                        for port in self._get_server_ports(clients, server_id)]

            associated_fips = [
                fip for fip in clients.neutron.list_floatingips()['floatingips']
                if fip.get('port_id') in port_ids
            ]
        except NEUTRON_ERRORS as exc:
            failures.append(ActionFailed(
                'Unable to look up floating IPs of server [{0}]: {1}'.format(
                    server_id, exc)))

            associated_fips = []

        for fip in associated_fips:
            try:
                self._destroy_fip(clients, fip['id'])
            except ActionFailed as exc:
                failures.append(exc)

        try:
            clients.nova.servers.delete(server_id)
        except nova_exceptions.NotFound:
            pass
        except NOVA_ERRORS as exc:
            failures.append(ActionFailed(
                'Unable to delete server [{0}] ({1}): {2}'.format(
                    server_id, getattr(server, 'name', None), exc)))

        if failures:
            err = failures[0]

            for exc in failures[1:]:
                err.add_suppressed(exc)

            raise err

        self._logger.debug('Machine destroyed: [{0}]'.format(server_id))

    #
    # Floating IPs
    #

    def assign_floating_ip(self, server: Any, pool_name: str) -> Any:
        """
        Assign floating IP address to the server.

        The description of the IP links it to the server it was created
        for. It is always created after the server, so any IP found
        without its server running is a leaked one.

        :returns: refreshed server, the passed instance does not contain
                  the new address
        :raises ActionFailed:
        """

        self._logger.debug(
            'Allocating floating IP for [{0}] in [{1}]'.format(
                server.name, pool_name))

        clients = self.clients()

        description = get_description(
            self.fingerprint, server_scope(server.id))

        try:
            ports = self._get_server_ports(clients, server.id)

            networks = clients.neutron.list_networks(
                name=pool_name)['networks']

            if not ports:
                raise ActionFailed(
                    'No port found for server [{0}]'.format(server.name))

            if not networks:
                raise ActionFailed(
                    'Floating IP pool [{0}] does not exist'.format(
                        pool_name))

            fip = clients.neutron.create_floatingip({
                'floatingip': {
                    'floating_network_id': networks[0]['id'],
                    'port_id': ports[0]['id'],
                    'description': description,
                }
            })['floatingip']
        except NEUTRON_ERRORS as exc:
            raise ActionFailed(
                '{0} Allocating for [{1}]'.format(exc, server.name)) from exc

        address = fip['floating_ip_address']

        try:
            # Make sure address is reflected in server details
            for _ in range(self.FIP_PROPAGATION_ATTEMPTS):
                gevent.sleep(self.fip_propagation_interval)

                server = self.update_info(server)

                for server_address in iter_addresses(server):
                    if server_address.get('addr') == address:
                        return server

            err = ActionFailed(
                'IP address not propagated in time for [{0}]'.format(
                    server.name))
        except (ResourceNotFound, OperationFailed) as exc:
            err = ActionFailed(
                'Unable to verify IP address of [{0}]: {1}'.format(
                    server.name, exc))

        try:
            self.destroy_fip(fip['id'])
        except ActionFailed as exc:
            err.add_suppressed(exc)

        raise err

    def _destroy_fip(self, clients: OpenstackClients, fip_id: str) -> None:
        try:
            clients.neutron.delete_floatingip(fip_id)
        except neutron_exceptions.NotFound:
            # Deleted by some other action
            self._logger.debug('Fip destroyed: [{0}]'.format(fip_id))
        except NEUTRON_ERRORS as exc:
            raise ActionFailed(
                'Unable to release floating IP [{0}]: {1}'.format(
                    fip_id, exc)) from exc

    def destroy_fip(self, fip_id: str) -> None:
        """
        :raises ActionFailed:
        """

        self._destroy_fip(self.clients(), fip_id)

    def get_free_fip_ids(self) -> List[str]:
        """
        Get floating IPs created by this installation that are not
        attached to any port
        """

        free_ips = []

        for fip in self.clients().neutron.list_floatingips()['floatingips']:
            if fip.get('port_id') or fip.get('fixed_ip_address'):
                continue

            try:
                server_id = get_server_id(
                    self.fingerprint, fip.get('description'))
            except ValueError as exc:
                self._logger.warning(
                    'Ignoring floating IP [{0}]: {1}'.format(fip['id'], exc))

                continue

            if server_id is None:
                # not ours
                continue

            free_ips.append(fip['id'])

        return free_ips

    def sanity_check(self) -> Optional[Exception]:
        """
        Talk to all endpoints the adapter relies on so we know they exist,
        are enabled and accessible with the credentials.

        :returns: the first failure or None
        """

        try:
            clients = self.clients()

            clients.neutron.list_networks()
            next(iter(clients.glance.images.list(limit=1)), None)
            clients.nova.flavors.list()
        except Exception as exc:  # pylint: disable=broad-except
            return exc

        return None
