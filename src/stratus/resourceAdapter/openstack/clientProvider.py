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
OpenStack clients can not be shared between threads. The providers here
keep only the reusable authentication state and build a fresh set of
clients for every use.
"""

import hashlib
import logging
from typing import Any, Callable, NamedTuple, Optional

import keystoneauth1.exceptions
from cinderclient import client as cinder_client
from glanceclient import client as glance_client
from keystoneauth1 import session as keystone_session
from keystoneauth1.identity import v3
from neutronclient.v2_0 import client as neutron_client
from novaclient import client as nova_client

from stratus.exceptions.authenticationFailed import AuthenticationFailed
from stratus.exceptions.configurationError import ConfigurationError

from .cache import CachedFunction


DEFAULT_COMPUTE_API_VERSION = '2.1'
DEFAULT_IMAGE_API_VERSION = '2'
DEFAULT_VOLUME_API_VERSION = '3'

DEFAULT_TIMEOUT = 20

# Keystone tokens live for one hour by default; keep facades for a
# fraction of that so externally revoked or rotated credentials are
# noticed reasonably soon.
FACTORY_CACHE_TTL = 600


class Credential(NamedTuple):
    username: str
    password: str
    project_name: str
    user_domain_name: str = 'Default'
    project_domain_name: str = 'Default'

    def __repr__(self):
        # never leak the secret into logs
        return 'Credential({}@{}/{})'.format(
            self.username, self.user_domain_name, self.project_name)


class OpenstackClients(object):
    """Set of API clients sharing one keystone session"""

    def __init__(self, nova: Any, neutron: Any, glance: Any = None,
                 cinder: Any = None) -> None:
        self.nova = nova
        self.neutron = neutron
        self.glance = glance
        self.cinder = cinder


class ClientProvider(object):
    def get(self) -> OpenstackClients:
        raise NotImplementedError

    def get_info(self) -> str:
        return ''


class StaticClientProvider(ClientProvider):
    """
    Always hands out the same clients. Only suitable when the clients are
    confined to a single thread, as in tests.
    """

    def __init__(self, clients: OpenstackClients) -> None:
        self._clients = clients

    def get(self) -> OpenstackClients:
        return self._clients


class SessionClientProvider(ClientProvider):
    """
    Authenticates once and recreates clients from the persisted auth
    state on every call to get().

    :raises AuthenticationFailed: credentials were rejected
    :raises ConfigurationError: endpoint can not be reached
    """

    def __init__(self, endpoint: str, credential: Credential,
                 region: Optional[str] = None, verify: bool = True,
                 timeout: int = DEFAULT_TIMEOUT) -> None:
        self._logger = logging.getLogger(
            'stratus.openstack.clientProvider')

        self._endpoint = endpoint
        self._credential = credential
        self._region = region
        self._verify = verify
        self._timeout = timeout

        auth = self._new_auth()

        try:
            auth.get_access(self._new_session(auth))
        except keystoneauth1.exceptions.Unauthorized as exc:
            raise AuthenticationFailed(
                'Unable to authenticate to [{0}] as {1}: {2}'.format(
                    endpoint, credential, exc))
        except keystoneauth1.exceptions.ConnectionError as exc:
            raise ConfigurationError(
                'Unable to connect to [{0}]: {1}'.format(endpoint, exc))

        self._auth_state = auth.get_auth_state()

        self._logger.debug(
            'OpenStack client created for [%s], region [%s]',
            credential, region)

    def _new_auth(self) -> v3.Password:
        auth = v3.Password(
            auth_url=self._endpoint,
            username=self._credential.username,
            password=self._credential.password,
            project_name=self._credential.project_name,
            user_domain_name=self._credential.user_domain_name,
            project_domain_name=self._credential.project_domain_name,
        )

        if getattr(self, '_auth_state', None):
            # token is reused until it expires, then keystoneauth
            # re-authenticates transparently with the stored credential
            auth.set_auth_state(self._auth_state)

        return auth

    def _new_session(self, auth) -> keystone_session.Session:
        return keystone_session.Session(
            auth=auth, verify=self._verify, timeout=self._timeout)

    def get(self) -> OpenstackClients:
        sess = self._new_session(self._new_auth())

        return OpenstackClients(
            nova=nova_client.Client(
                DEFAULT_COMPUTE_API_VERSION, session=sess,
                region_name=self._region),
            neutron=neutron_client.Client(
                session=sess, region_name=self._region),
            glance=glance_client.Client(
                DEFAULT_IMAGE_API_VERSION, session=sess,
                region_name=self._region),
            cinder=cinder_client.Client(
                DEFAULT_VOLUME_API_VERSION, session=sess,
                region_name=self._region),
        )

    def get_info(self) -> str:
        auth = self._new_auth()

        access = auth.get_access(self._new_session(auth))

        return ', '.join(
            '{}/{}'.format(service.get('type'), service.get('name'))
            for service in access.service_catalog.catalog or []
        )


class ConnectionSpec(object):
    """
    Everything needed to connect to a cloud. Equality and hashing only
    consider the digest so secrets are not used as cache keys directly.

    :param sleeptime: poll interval of facades created for the spec
    """

    def __init__(self, endpoint: str, credential: Credential,
                 region: Optional[str] = None, verify: bool = True,
                 timeout: int = DEFAULT_TIMEOUT,
                 sleeptime: Optional[float] = None) -> None:
        self.endpoint = endpoint
        self.credential = credential
        self.region = region
        self.verify = verify
        self.timeout = timeout
        self.sleeptime = sleeptime

        self.digest = hashlib.sha256('\n'.join([
            endpoint or '',
            str(verify),
            credential.username,
            credential.user_domain_name,
            credential.project_name,
            credential.project_domain_name,
            credential.password,
            region or '',
            str(timeout),
            str(sleeptime),
        ]).encode('utf-8')).hexdigest()

    def __eq__(self, other):
        return isinstance(other, ConnectionSpec) and \
            self.digest == other.digest

    def __hash__(self):
        return hash(self.digest)

    def __repr__(self):
        return 'ConnectionSpec({}, {}, region={})'.format(
            self.endpoint, self.credential, self.region)


class OpenstackFactory(object):
    """
    Hands out facades, reusing one per connection spec for a limited time
    so identical configurations share an authenticated session.

    :param create: builds a new facade from a ConnectionSpec
    """

    def __init__(self, create: Callable[[ConnectionSpec], Any],
                 ttl: float = FACTORY_CACHE_TTL, **kwargs) -> None:
        # failures are not cached, next call attempts to authenticate again
        self._cache = CachedFunction(
            create, ttl, cache_exceptions=False, **kwargs)

    def get(self, spec: ConnectionSpec) -> Any:
        if not spec.endpoint:
            raise ConfigurationError('No endpoint specified')

        return self._cache.get(spec)

    def invalidate(self) -> None:
        self._cache.clear()
