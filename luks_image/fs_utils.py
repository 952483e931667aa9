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
"""
Filesystem helpers for the unlocked device: zeroing, mkfs and mounts.

"""

import os

from ironic_lib import utils
from oslo_log import log
from oslo_utils import excutils

from luks_image import config

CONF = config.CONF
LOG = log.getLogger(__name__)

_SECTOR_SIZE = 512


def device_size(device):
    out, _err = utils.execute('blockdev', '--getsize64', device)
    return int(out.strip())


def zero_device(device):
    """Overwrite a block device with zeros

    Writes go through the LUKS mapping, so the backing file ends up
    holding ciphertext over its whole length.

    :param device: path of the block device to overwrite
    """
    size = device_size(device)
    block_size = CONF.zero_block_size
    blocks, remainder = divmod(size, block_size)
    LOG.info("Zeroing %(device)s (%(size)d bytes)",
             {'device': device, 'size': size})
    try:
        if blocks:
            utils.execute('dd', 'if=/dev/zero', 'of=%s' % device,
                          'bs=%d' % block_size, 'count=%d' % blocks,
                          'conv=fsync', 'status=none')
        if remainder >= _SECTOR_SIZE:
            utils.execute('dd', 'if=/dev/zero', 'of=%s' % device,
                          'bs=%d' % _SECTOR_SIZE,
                          'seek=%d' % (blocks * block_size // _SECTOR_SIZE),
                          'count=%d' % (remainder // _SECTOR_SIZE),
                          'conv=fsync', 'status=none')
    except Exception:
        with excutils.save_and_reraise_exception():
            LOG.error("Failed to zero %(device)s", {'device': device})


def make_filesystem(device):
    try:
        utils.execute('mkfs.xfs', '-q', *CONF.mkfs_options, device,
                      use_standard_locale=True)
    except Exception:
        with excutils.save_and_reraise_exception():
            LOG.error("Failed to create an XFS filesystem on %(device)s",
                      {'device': device})


def list_mounts():
    """Parse ``mount`` output

    :return: list of (source, target) tuples in mount order
    """
    out, _err = utils.execute('mount', use_standard_locale=True)
    mounts = []
    for line in out.splitlines():
        source, sep, rest = line.partition(' on ')
        if not sep:
            continue
        target = rest.rpartition(' type ')[0] or rest
        mounts.append((source, target))
    return mounts


def find_mount_point(device):
    """Where ``device`` is mounted, or None

    ``mount`` may list a mapped device either by its /dev/mapper name or by
    the /dev/dm-N node it links to, so both are matched.
    """
    real = os.path.realpath(device)
    for source, target in list_mounts():
        if source == device or (source.startswith('/')
                                and os.path.realpath(source) == real):
            return target
    return None


def is_mounted(mount_point):
    wanted = os.path.realpath(mount_point)
    return any(os.path.realpath(target) == wanted
               for _source, target in list_mounts())


def mount(device, mount_point):
    try:
        utils.execute('mount', device, mount_point)
    except Exception:
        with excutils.save_and_reraise_exception():
            LOG.error("Failed to mount %(device)s on %(mount_point)s",
                      {'device': device, 'mount_point': mount_point})
    LOG.info("Mounted %(device)s on %(mount_point)s",
             {'device': device, 'mount_point': mount_point})


def umount(mount_point):
    try:
        utils.execute('umount', mount_point)
    except Exception:
        with excutils.save_and_reraise_exception():
            LOG.error("Failed to unmount %(mount_point)s",
                      {'mount_point': mount_point})
    LOG.info("Unmounted %s", mount_point)
