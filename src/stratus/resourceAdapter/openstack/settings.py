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

from stratus.resourceAdapterConfiguration import settings


GROUP_INSTANCES = {
    'group': 'Instances',
    'group_order': 0
}
GROUP_AUTHENTICATION = {
    'group': 'Authentication',
    'group_order': 1
}
GROUP_NETWORKING = {
    'group': 'Networking',
    'group_order': 2
}
GROUP_API = {
    'group': 'API',
    'group_order': 3
}

BOOT_SOURCE_SETTINGS = ['image', 'volume_snapshot', 'volume_from_image']


CLOUD_SETTINGS = {
    #
    # API
    #
    'endpoint': settings.StringSetting(
        display_name='Endpoint',
        description='Keystone (identity v3) endpoint URL',
        required=True,
        **GROUP_API
    ),
    'region': settings.StringSetting(
        display_name='Region',
        description='Region to use, when the deployment has more of them',
        **GROUP_API
    ),
    'verify_ssl': settings.BooleanSetting(
        display_name='Verify SSL certificates',
        default='True',
        **GROUP_API
    ),
    'timeout': settings.IntegerSetting(
        display_name='API timeout',
        description='Connection and read timeout in seconds',
        default='20',
        advanced=True,
        **GROUP_API
    ),
    'sleeptime': settings.IntegerSetting(
        display_name='Sleep time',
        description='Seconds between polls while waiting for servers',
        default='5',
        advanced=True,
        **GROUP_API
    ),

    #
    # Authentication
    #
    'username': settings.StringSetting(
        display_name='User name',
        required=True,
        **GROUP_AUTHENTICATION
    ),
    'password': settings.StringSetting(
        display_name='Password',
        secret=True,
        required=True,
        **GROUP_AUTHENTICATION
    ),
    'project_name': settings.StringSetting(
        display_name='Project',
        required=True,
        **GROUP_AUTHENTICATION
    ),
    'user_domain_name': settings.StringSetting(
        display_name='User domain',
        default='Default',
        **GROUP_AUTHENTICATION
    ),
    'project_domain_name': settings.StringSetting(
        display_name='Project domain',
        default='Default',
        **GROUP_AUTHENTICATION
    ),

    #
    # Instances
    #
    'instance_cap': settings.IntegerSetting(
        display_name='Instance cap',
        description='Maximum number of servers running in this cloud',
        **GROUP_INSTANCES
    ),
}


TEMPLATE_SETTINGS = {
    #
    # Instances
    #
    'image': settings.StringSetting(
        display_name='Image',
        description='Name or id of the image to boot from',
        mutually_exclusive=['volume_snapshot', 'volume_from_image'],
        **GROUP_INSTANCES
    ),
    'volume_snapshot': settings.StringSetting(
        display_name='Volume snapshot',
        description='Name or id of volume snapshot to boot from',
        mutually_exclusive=['image', 'volume_from_image'],
        **GROUP_INSTANCES
    ),
    'volume_from_image': settings.StringSetting(
        display_name='Volume from image',
        description='Name or id of image to create a boot volume from',
        mutually_exclusive=['image', 'volume_snapshot'],
        requires=['volume_size'],
        **GROUP_INSTANCES
    ),
    'volume_size': settings.IntegerSetting(
        display_name='Volume size',
        description='Size of the boot volume in GB',
        requires=['volume_from_image'],
        **GROUP_INSTANCES
    ),
    'flavor': settings.StringSetting(
        display_name='Flavor',
        description='Name or id of the hardware flavor',
        required=True,
        **GROUP_INSTANCES
    ),
    'keypair': settings.StringSetting(
        display_name='SSH keypair',
        description='Name of keypair to install on new servers',
        **GROUP_INSTANCES
    ),
    'availability_zone': settings.StringSetting(
        display_name='Availability zone',
        **GROUP_INSTANCES
    ),
    'user_data_script_template': settings.FileSetting(
        display_name='User data script template',
        description='Path to user data passed to new servers',
        **GROUP_INSTANCES
    ),
    'tags': settings.TagListSetting(
        display_name='Tags',
        key_validation_regex='^(?!stratus-).{1,255}',
        value_validation_regex='.{0,255}',
        description='A space-separated list of metadata in the form of '
                    'key=value',
        **GROUP_INSTANCES
    ),
    'boot_timeout': settings.IntegerSetting(
        display_name='Boot timeout',
        description='Seconds to wait for server to become active',
        default='900',
        advanced=True,
        **GROUP_INSTANCES
    ),
    'instance_cap': settings.IntegerSetting(
        display_name='Instance cap',
        description='Maximum number of servers running from this template',
        **GROUP_INSTANCES
    ),

    #
    # Networking
    #
    'network': settings.StringSetting(
        display_name='Networks',
        description='Comma-separated names or ids of networks',
        list=True,
        **GROUP_NETWORKING
    ),
    'security_groups': settings.StringSetting(
        display_name='Security groups',
        description='Comma-separated names of security groups',
        list=True,
        **GROUP_NETWORKING
    ),
    'floating_ip_pool': settings.StringSetting(
        display_name='Floating IP pool',
        description='Name of the network to allocate floating IP from',
        **GROUP_NETWORKING
    ),
}
