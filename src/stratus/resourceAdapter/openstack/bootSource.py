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

import enum
import logging
from typing import Any, Dict, List, NamedTuple, Optional

from stratus.exceptions.actionFailed import ActionFailed
from stratus.exceptions.configurationError import ConfigurationError

from .launchRequest import ServerCreateRequest


logger = logging.getLogger(__name__)

BOOT_SOURCE_KEY = 'stratus-boot-source'


class BootSourceKind(enum.Enum):
    IMAGE = 'image'
    VOLUME_SNAPSHOT = 'volume_snapshot'
    VOLUME_FROM_IMAGE = 'volume_from_image'


class BootSource(NamedTuple):
    """
    What a server boots from
    """

    kind: BootSourceKind
    name: str
    volume_size: Optional[int] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'BootSource':
        """
        :raises ConfigurationError: no boot source configured
        """

        for kind in BootSourceKind:
            if config.get(kind.value):
                return cls(kind, config[kind.value],
                           config.get('volume_size')
                           if kind == BootSourceKind.VOLUME_FROM_IMAGE
                           else None)

        raise ConfigurationError(
            'One of {} is required'.format(
                ', '.join(kind.value for kind in BootSourceKind)))

    def __str__(self):
        if self.kind == BootSourceKind.IMAGE:
            return 'Image {}'.format(self.name)

        if self.kind == BootSourceKind.VOLUME_SNAPSHOT:
            return 'VolumeSnapshot {}'.format(self.name)

        return 'Volume from Image {} ({}GB)'.format(
            self.name, self.volume_size)


def select_id(matching_ids: List[str], name: str, plural: str) -> str:
    """
    Pick the most recent of matching ids. Name is used verbatim when
    nothing matches so the API reports the problem.
    """

    if not matching_ids:
        logger.info('No {} match name [{}]'.format(plural, name))

        return name

    if len(matching_ids) > 1:
        logger.warning(
            'Ambiguity: {} {} match name [{}]. Using the most recent one:'
            ' {}'.format(len(matching_ids), plural, name, matching_ids[-1]))

    return matching_ids[-1]


def set_server_boot_source(source: BootSource,
                           request: ServerCreateRequest,
                           openstack: Any) -> None:
    """
    Configure the create request to boot from the source
    """

    if source.kind == BootSourceKind.IMAGE:
        request.image = select_id(
            openstack.get_image_ids_for(source.name), source.name, 'images')
    elif source.kind == BootSourceKind.VOLUME_FROM_IMAGE:
        request.add_block_device({
            'source_type': 'image',
            'destination_type': 'volume',
            'uuid': select_id(openstack.get_image_ids_for(source.name),
                              source.name, 'images'),
            'volume_size': source.volume_size,
            'delete_on_termination': True,
            'boot_index': 0,
        })
    elif source.kind == BootSourceKind.VOLUME_SNAPSHOT:
        request.add_block_device({
            'source_type': 'snapshot',
            'destination_type': 'volume',
            'uuid': select_id(
                openstack.get_volume_snapshot_ids_for(source.name),
                source.name, 'volume snapshots'),
            'delete_on_termination': True,
            'boot_index': 0,
        })
    else:
        raise ValueError('Unsupported boot source: {}'.format(source.kind))

    request.add_metadata_item(BOOT_SOURCE_KEY, str(source))


def after_provisioning(source: BootSource, server: Any,
                       openstack: Any) -> None:
    """
    Name the volumes created for server booted from a volume snapshot so
    humans can recognize them. Failures are only logged.
    """

    if source.kind != BootSourceKind.VOLUME_SNAPSHOT:
        return

    volumes = getattr(
        server, 'os-extended-volumes:volumes_attached', None) or []

    description = 'For {} ({}), from VolumeSnapshot {}.'.format(
        server.name, server.id, source.name)

    for index, volume in enumerate(volumes):
        try:
            openstack.set_volume_name_and_description(
                volume['id'], '{}[{}]'.format(server.name, index),
                description)
        except ActionFailed as exc:
            logger.warning(
                'Unable to name volume [{}] of [{}]: {}'.format(
                    volume['id'], server.name, exc))
