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

from typing import Any, Callable, Dict, List, NamedTuple, Optional


class ServerCreateRequest(object):
    """
    Accumulates arguments for novaclient 'servers.create()'
    """

    def __init__(self, name: str, flavor: Optional[str] = None) -> None:
        self.name = name
        self.flavor = flavor
        self.image: Optional[str] = None
        self.metadata: Dict[str, str] = {}
        self.key_name: Optional[str] = None
        self.security_groups: List[str] = []
        self.networks: List[str] = []
        self.availability_zone: Optional[str] = None
        self.userdata: Optional[str] = None
        self.block_device_mapping_v2: List[Dict[str, Any]] = []

    def add_metadata_item(self, key: str, value: str) -> None:
        self.metadata[key] = value

    def add_block_device(self, mapping: Dict[str, Any]) -> None:
        self.block_device_mapping_v2.append(mapping)

    def kwargs(self) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            'name': self.name,
            'image': self.image,
            'flavor': self.flavor,
            'meta': dict(self.metadata),
        }

        if self.key_name:
            args['key_name'] = self.key_name

        if self.security_groups:
            args['security_groups'] = list(self.security_groups)

        if self.networks:
            args['nics'] = [{'net-id': network_id}
                            for network_id in self.networks]

        if self.availability_zone:
            args['availability_zone'] = self.availability_zone

        if self.userdata:
            args['userdata'] = self.userdata

        if self.block_device_mapping_v2:
            args['block_device_mapping_v2'] = \
                list(self.block_device_mapping_v2)

        return args

    def __repr__(self):
        return 'ServerCreateRequest(name={!r}, flavor={!r}, image={!r})'.format(
            self.name, self.flavor, self.image)


class NodePlan(NamedTuple):
    """
    Request for 'count' servers of a template, each created by calling
    'node_supplier'. Consumed once per provisioning batch.
    """

    cloud_name: str
    template_name: str
    count: int
    node_supplier: Callable[[], Any]


class RunningNode(NamedTuple):
    cloud_name: str
    template_name: str
    node: Any

    @property
    def server_id(self) -> str:
        return self.node.id
