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

from typing import Any, Dict, List, Optional

import gevent.pool

from stratus.exceptions.actionFailed import ActionFailed
from stratus.exceptions.instanceCapReached import InstanceCapReached
from stratus.exceptions.invalidArgument import InvalidArgument
from stratus.exceptions.operationFailed import OperationFailed
from stratus.exceptions.provisionFailed import ProvisionFailed
from stratus.exceptions.stratusException import StratusException
from stratus.resourceAdapter.resourceAdapter import ResourceAdapter
from stratus.resourceAdapterConfiguration.profiles import ProfileRegistry

from .bootSource import BootSource, after_provisioning, set_server_boot_source
from .cleanup import FipCleaner
from .clientProvider import (ConnectionSpec, Credential, OpenstackFactory,
                             SessionClientProvider)
from .destroyMachine import DestroyMachine, State
from .fingerprint import get_metadata, instance_fingerprint
from .helpers import TEMPLATE_KEY, generate_server_name, read_user_data
from .launchRequest import NodePlan, RunningNode, ServerCreateRequest
from .openstack import Openstack
from .provisioning import ProvisionPlannedInstancesAndDestroyAllOnError
from .settings import CLOUD_SETTINGS, TEMPLATE_SETTINGS
from .terminateNodes import TerminateNodes


class OpenstackAdapter(ResourceAdapter):
    """
    OpenStack resource adapter

    :param registry: cloud and template profiles
    :param factory: source of facades, one is created when not provided
    :param pool: pool servers are provisioned in
    """

    __adaptername__ = 'openstack'

    settings = CLOUD_SETTINGS

    template_settings = TEMPLATE_SETTINGS

    DEFAULT_POOL_SIZE = 10

    def __init__(self, registry: ProfileRegistry,
                 factory: Optional[OpenstackFactory] = None,
                 pool: Optional[gevent.pool.Pool] = None) -> None:
        super(OpenstackAdapter, self).__init__(registry)

        self._fingerprint: Optional[str] = None

        self._factory = factory or OpenstackFactory(self._create_openstack)

        self._pool = pool if pool is not None else \
            gevent.pool.Pool(self.DEFAULT_POOL_SIZE)

        self.terminate_nodes = TerminateNodes(self.get_openstack)

        self._fip_cleaner = FipCleaner(self.get_openstack)

    @property
    def fingerprint(self) -> str:
        """
        :raises ConfigurationError: installation URL is not configured
        """

        if self._fingerprint is None:
            self._fingerprint = instance_fingerprint(self.registry.url)

        return self._fingerprint

    def process_template_config(self, config: Dict[str, Any]) -> None:
        config['boot_source'] = BootSource.from_config(config)

    def get_connection_spec(self, config: Dict[str, Any]) -> ConnectionSpec:
        return ConnectionSpec(
            config['endpoint'],
            Credential(
                username=config['username'],
                password=config['password'],
                project_name=config['project_name'],
                user_domain_name=config['user_domain_name'],
                project_domain_name=config['project_domain_name'],
            ),
            region=config.get('region'),
            verify=config['verify_ssl'],
            timeout=config['timeout'],
            sleeptime=config['sleeptime'],
        )

    def _create_openstack(self, spec: ConnectionSpec) -> Openstack:
        provider = SessionClientProvider(
            spec.endpoint, spec.credential, region=spec.region,
            verify=spec.verify, timeout=spec.timeout)

        return Openstack(provider, self.fingerprint,
                         sleeptime=spec.sleeptime or
                         Openstack.DEFAULT_SLEEP_TIME)

    def get_openstack(self, cloud_name: str) -> Openstack:
        """
        Get facade of the cloud. Do not hold on to it for long, it is
        reused only for a limited time.

        :raises ProfileNotFound: cloud is not configured
        :raises ConfigurationError:
        :raises AuthenticationFailed:
        """

        return self._factory.get(
            self.get_connection_spec(self.get_config(cloud_name)))

    def start(self, cloud_name: str, template_name: str,
              count: int) -> List[RunningNode]:
        """
        Provision 'count' servers from the template, all or none of them.

        :raises InvalidArgument:
        :raises ProfileNotFound:
        :raises InstanceCapReached:
        :raises AllOrNothing:
        """

        if count < 1:
            raise InvalidArgument(
                'Number of servers must be positive: {}'.format(count))

        config = self.get_config(cloud_name)

        template = self.get_template_config(cloud_name, template_name)

        self._check_instance_cap(
            self.get_openstack(cloud_name), cloud_name, config,
            template_name, template, count)

        self._logger.info(
            'Provisioning {0} server(s) of [{1}] in [{2}]'.format(
                count, template_name, cloud_name))

        node_plan = NodePlan(
            cloud_name, template_name, count,
            lambda: self._provision_node(cloud_name, template_name, template))

        provision = ProvisionPlannedInstancesAndDestroyAllOnError(
            self._pool, self.terminate_nodes)

        return provision([node_plan])

    def _check_instance_cap(self, openstack: Openstack, cloud_name: str,
                            config: Dict[str, Any], template_name: str,
                            template: Dict[str, Any], count: int) -> None:
        cloud_cap = config.get('instance_cap')
        template_cap = template.get('instance_cap')

        if cloud_cap is None and template_cap is None:
            return

        running = openstack.get_running_nodes()

        if cloud_cap is not None and len(running) + count > cloud_cap:
            raise InstanceCapReached(
                'Cloud [{0}] instance cap ({1}) would be exceeded: {2}'
                ' running, {3} requested'.format(
                    cloud_name, cloud_cap, len(running), count))

        if template_cap is not None:
            from_template = [
                server for server in running
                if get_metadata(server).get(TEMPLATE_KEY) == template_name
            ]

            if len(from_template) + count > template_cap:
                raise InstanceCapReached(
                    'Template [{0}] instance cap ({1}) would be exceeded:'
                    ' {2} running, {3} requested'.format(
                        template_name, template_cap, len(from_template),
                        count))

    def _provision_node(self, cloud_name: str, template_name: str,
                        template: Dict[str, Any]) -> Any:
        """
        Boot a single server from the template

        :raises ProvisionFailed:
        """

        openstack = self.get_openstack(cloud_name)

        request = ServerCreateRequest(
            generate_server_name(template_name),
            openstack.get_flavor_id(template['flavor']))

        for key, value in template.get('tags', {}).items():
            request.add_metadata_item(key, value)

        request.add_metadata_item(TEMPLATE_KEY, template_name)

        boot_source = template['boot_source']

        set_server_boot_source(boot_source, request, openstack)

        request.key_name = template.get('keypair')
        request.security_groups = template.get('security_groups', [])
        request.networks = list(
            openstack.get_networks(template.get('network', [])))
        request.availability_zone = template.get('availability_zone')
        request.userdata = read_user_data(
            template.get('user_data_script_template'))

        server = openstack.boot_and_wait_active(
            request, template['boot_timeout'])

        self._logger.info(
            'Server [{0}] ({1}) is active'.format(server.name, server.id))

        pool_name = template.get('floating_ip_pool')

        if pool_name:
            try:
                server = openstack.assign_floating_ip(server, pool_name)
            except ActionFailed as exc:
                err = ProvisionFailed(
                    'Unable to assign floating IP to [{0}]: {1}'.format(
                        server.name, exc))

                try:
                    openstack.destroy_server(server)
                except ActionFailed as destroy_exc:
                    err.add_suppressed(destroy_exc)

                raise err from exc

        after_provisioning(boot_source, server, openstack)

        return server

    def deleteNode(self, nodes: List[RunningNode]) -> None:
        """
        Terminate servers, best-effort
        """

        self.terminate_nodes(nodes)

    def dispose_one(self, cloud_name: str, server_id: str) -> State:
        """
        :raises CloudGone: cloud is no longer configured
        """

        try:
            return DestroyMachine(
                cloud_name, server_id, self.get_openstack).dispose()
        except OperationFailed as exc:
            self._logger.warning(
                'Unable to dispose [{0}] in [{1}]: {2}'.format(
                    server_id, cloud_name, exc))

            return State.FAILED_WILL_RETRY

    def list_running(self, cloud_name: str) -> List[Any]:
        return self.get_openstack(cloud_name).get_running_nodes()

    def sanity_check(self, cloud_name: str) -> Optional[Exception]:
        """
        :returns: first problem found with the cloud or None
        """

        try:
            openstack = self.get_openstack(cloud_name)
        except StratusException as exc:
            return exc

        return openstack.sanity_check()

    def cleanup_leaked_fips(self) -> Dict[str, List[str]]:
        return self._fip_cleaner.clean_orphaned_fips(
            self.registry.cloud_names())
