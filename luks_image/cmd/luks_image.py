# Copyright 2024 Ericsson Software Technology
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import os
import signal
import sys

from oslo_concurrency import processutils
from oslo_config import cfg
from oslo_log import log

from luks_image import config
from luks_image import errors
from luks_image import image_manager

CONF = config.CONF
LOG = log.getLogger(__name__)

_INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class ImageCommand(object):

    def __init__(self):
        self.manager = image_manager.ImageManager()

    def create(self):
        self.manager.create(CONF.command.image, CONF.command.map_name,
                            CONF.command.size,
                            key_size=CONF.command.luks_key_size,
                            hash_name=CONF.command.luks_hash,
                            loop_device=CONF.command.loop_device,
                            mount_point=CONF.command.mount_point,
                            key_file=CONF.command.key_file)

    def mount(self):
        self.manager.mount(CONF.command.image, CONF.command.map_name,
                           mount_point=CONF.command.mount_point,
                           loop_device=CONF.command.loop_device,
                           create_mount_point=CONF.command.create_mount_point,
                           key_file=CONF.command.key_file)

    def umount(self):
        self.manager.umount(CONF.command.map_name,
                            mount_point=CONF.command.mount_point)

    def status(self):
        records = self.manager.status(CONF.command.map_name)
        print('%-20s %-40s %s' % ('NAME', 'IMAGE', 'MOUNTPOINT'))
        for record in records:
            print('%-20s %-40s %s' % (record['name'],
                                      record['image'] or '-',
                                      record['mount_point'] or '-'))


def _add_name(parser, required=True):
    parser.add_argument('-n', '--name', dest='map_name', required=required,
                        help='Device-mapper name of the opened image.')


def add_command_parsers(subparsers):
    command_object = ImageCommand()

    parser = subparsers.add_parser(
        'create',
        help='Create, format and mount a new encrypted image.')
    parser.add_argument('-s', '--size', dest='size', required=True,
                        help='Image size, e.g. 512M or 10G.')
    parser.add_argument('-i', '--image', dest='image', required=True,
                        help='Path of the image file to create.')
    _add_name(parser)
    parser.add_argument('-k', '--key-size', dest='luks_key_size',
                        type=int,
                        help='LUKS key size in bits.')
    parser.add_argument('-H', '--hash', dest='luks_hash',
                        help='LUKS key derivation hash.')
    parser.add_argument('-L', '--loopback', dest='loop_device',
                        help='Loop device to use, e.g. /dev/loop3.')
    parser.add_argument('-p', '--mount-point', dest='mount_point',
                        help='Mount point, <mount_root>/NAME by default.')
    parser.add_argument('-K', '--key-file', dest='key_file',
                        help='Key file to use instead of a passphrase.')
    parser.set_defaults(func=command_object.create)

    parser = subparsers.add_parser(
        'mount',
        help='Open and mount an existing encrypted image.')
    _add_name(parser)
    parser.add_argument('-i', '--image', dest='image', required=True,
                        help='Path of the image file.')
    parser.add_argument('-p', '--mount-point', dest='mount_point',
                        help='Mount point, <mount_root>/NAME by default.')
    parser.add_argument('-L', '--loopback', dest='loop_device',
                        help='Loop device to use if the image is not '
                             'attached yet.')
    parser.add_argument('-C', '--create-mount-point',
                        dest='create_mount_point', action='store_true',
                        help='Create the mount point if it does not exist.')
    parser.add_argument('-K', '--key-file', dest='key_file',
                        help='Key file to use instead of a passphrase.')
    parser.set_defaults(func=command_object.mount)

    parser = subparsers.add_parser(
        'umount', aliases=['unmount'],
        help='Unmount and close an open encrypted image.')
    _add_name(parser)
    parser.add_argument('-p', '--mount-point', dest='mount_point',
                        help='Mount point, discovered from the mount table '
                             'by default.')
    parser.set_defaults(func=command_object.umount)

    parser = subparsers.add_parser(
        'status',
        help='List open encrypted images.')
    _add_name(parser, required=False)
    parser.set_defaults(func=command_object.status)


command_opt = cfg.SubCommandOpt('command',
                                title='Command',
                                help='Available commands',
                                handler=add_command_parsers)

CONF.register_cli_opt(command_opt)
log.register_options(CONF)


def _raise_interrupted(signum, frame):
    raise errors.OperationInterrupted(signal=signal.Signals(signum).name)


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    try:
        CONF(argv, project='luks-image')
    except SystemExit as e:
        # argparse exits with 2 on usage errors
        return 1 if e.code else 0
    except cfg.Error as e:
        sys.stderr.write("%s\n" % e)
        return 1
    log.setup(CONF, 'luks-image')

    if not CONF.command.name:
        LOG.error("No command given, see --help")
        return 1
    if os.geteuid() != 0:
        LOG.error("luks-image must be run as root")
        return 1

    for signum in _INTERRUPT_SIGNALS:
        signal.signal(signum, _raise_interrupted)
    try:
        CONF.command.func()
    except (errors.LuksImageError, processutils.ProcessExecutionError,
            OSError) as e:
        LOG.error("%(command)s failed: %(err)s",
                  {'command': CONF.command.name, 'err': e})
        return 1
    return 0
