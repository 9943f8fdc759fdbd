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

import logging
import sys

import click
import colorama
import gevent
from gevent import monkey

from stratus.exceptions.stratusException import StratusException
from stratus.resourceAdapter.openstack.adapter import OpenstackAdapter
from stratus.resourceAdapter.openstack.openstack import (
    get_access_ip_address)
from stratus.resourceAdapterConfiguration.profiles import ProfileRegistry


DEFAULT_CONFIG_PATH = '/etc/stratus/openstack.ini'


def disable_colour(ctx, param, value): \
        # pylint: disable=unused-argument
    colorama.init(strip=value)


def format_string_with_arg(msg, *args, **kwargs):
    forecolour = kwargs['forecolour'] \
        if 'forecolour' in kwargs else colorama.Fore.GREEN

    fmtargs = [colorama.Style.RESET_ALL + str(arg) +
               colorama.Style.BRIGHT + forecolour for arg in args]

    return forecolour + colorama.Style.BRIGHT + \
        msg.format(*fmtargs) + colorama.Style.RESET_ALL


def print_statement(msg, *args):
    print(format_string_with_arg(msg, *args))


def error_message(msg, *args):
    print(format_string_with_arg(msg, *args, forecolour=colorama.Fore.RED),
          file=sys.stderr)


@click.group()
@click.option('--config', 'config_path', envvar='STRATUS_CONFIG',
              default=DEFAULT_CONFIG_PATH, show_default=True,
              help='Path to cloud and template configuration')
@click.option('--verbose', is_flag=True, default=False,
              help='Enable verbose output')
@click.option('--debug', is_flag=True, default=False,
              help='Enable debug mode')
@click.option('--no-color', '--no-colour', is_flag=True, expose_value=False,
              callback=disable_colour,
              help='Disable colo[u]r output')
@click.pass_context
def cli(ctx, config_path, verbose, debug):
    """Manage servers of OpenStack clouds"""

    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    try:
        registry = ProfileRegistry.from_file(config_path)
    except StratusException as exc:
        error_message('Error: {0}', exc)

        ctx.exit(1)

    ctx.obj = OpenstackAdapter(registry)


@cli.command('sanity-check')
@click.argument('cloud')
@click.pass_obj
def sanity_check(adapter, cloud):
    """Verify the cloud is usable"""

    problem = adapter.sanity_check(cloud)

    if problem is not None:
        error_message('Cloud [{0}] is not usable: {1}', cloud, problem)

        sys.exit(1)

    print_statement('Cloud [{0}] is usable', cloud)


@cli.command('list')
@click.argument('cloud')
@click.pass_obj
def list_servers(adapter, cloud):
    """List servers running in the cloud"""

    for server in adapter.list_running(cloud):
        try:
            address = get_access_ip_address(server)
        except StratusException:
            address = '-'

        print('{0}\t{1}\t{2}\t{3}'.format(
            server.id, server.name, server.status, address))


@cli.command('dispose')
@click.argument('cloud')
@click.argument('server_id')
@click.pass_obj
def dispose(adapter, cloud, server_id):
    """Destroy a server"""

    try:
        state = adapter.dispose_one(cloud, server_id)
    except StratusException as exc:
        error_message('Error: {0}', exc)

        sys.exit(1)

    print_statement('Server [{0}]: {1}', server_id, state.value)


@cli.command('cleanup-fips')
@click.option('--interval', type=float, default=60, show_default=True,
              help='Seconds between the two passes')
@click.pass_obj
def cleanup_fips(adapter, interval):
    """
    Release leaked floating IPs. An IP is released only when found unused
    by both passes.
    """

    adapter.cleanup_leaked_fips()

    gevent.sleep(interval)

    for cloud, released in adapter.cleanup_leaked_fips().items():
        for fip_id in released:
            print_statement('Released floating IP [{0}] in [{1}]',
                            fip_id, cloud)


@cli.command('provision')
@click.argument('cloud')
@click.argument('template')
@click.option('--count', type=int, default=1, show_default=True,
              help='Number of servers to provision')
@click.pass_obj
def provision(adapter, cloud, template, count):
    """Provision servers from the template"""

    try:
        nodes = adapter.start(cloud, template, count)
    except StratusException as exc:
        error_message('Error: {0}', exc)

        sys.exit(1)

    for node in nodes:
        print_statement('Server [{0}] ({1}) provisioned',
                        node.node.name, node.server_id)


def main():
    # socket I/O of the API clients has to cooperate with greenlets
    monkey.patch_all()

    cli()  # pylint: disable=no-value-for-parameter
