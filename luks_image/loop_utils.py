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
Loopback device and backing file helpers.

"""

import os
import re

from ironic_lib import utils
from oslo_log import log
from oslo_utils import excutils
from oslo_utils import strutils

from luks_image import errors

LOG = log.getLogger(__name__)

_LOSETUP_LINE = re.compile(r'^(/dev/loop\d+): [^(]*\((.+)\)$')
_DELETED_SUFFIX = ' (deleted)'


def parse_size(text):
    """Convert a size such as ``10G``, ``512MiB`` or ``4096`` to bytes

    Single letter suffixes are binary multiples, as for truncate(1). A bare
    number is a byte count.

    :param text: the size as given on the command line
    :raises: InvalidArgument if the size is malformed or not positive
    :return: size in bytes
    :rtype: int
    """
    value = (text or '').strip()
    if value.isdigit():
        value += 'B'
    elif value and value[-1].upper() in 'KMGTPE':
        value = value[:-1] + value[-1].upper() + 'iB'
    try:
        size = strutils.string_to_bytes(value, unit_system='IEC',
                                        return_int=True)
    except ValueError:
        raise errors.InvalidArgument(details="bad size %r" % text)
    if size <= 0:
        raise errors.InvalidArgument(details="size must be positive, got %r"
                                     % text)
    return size


def create_sparse_file(path, size):
    """Create a new sparse backing file

    :param path: path of the file, which must not exist yet
    :param size: apparent size in bytes
    :raises: ImageExists if something is already at ``path``
    """
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        raise errors.ImageExists(image=path)
    try:
        os.ftruncate(fd, size)
    except Exception:
        with excutils.save_and_reraise_exception():
            LOG.error("Could not extend %(path)s to %(size)d bytes",
                      {'path': path, 'size': size})
    finally:
        os.close(fd)
    LOG.debug("Created sparse file %(path)s of %(size)d bytes",
              {'path': path, 'size': size})


def list_loop_devices():
    """Map every attached loop device to its backing file

    :return: dict of loop device path to backing file path
    """
    out, _err = utils.execute('losetup', '-a')
    devices = {}
    for line in out.splitlines():
        match = _LOSETUP_LINE.match(line.strip())
        if not match:
            continue
        backing = match.group(2)
        if backing.endswith(_DELETED_SUFFIX):
            backing = backing[:-len(_DELETED_SUFFIX)]
        devices[match.group(1)] = backing
    return devices


def find_loop_device(image):
    """Return the loop device backed by ``image``, or None."""
    wanted = os.path.realpath(image)
    for device, backing in sorted(list_loop_devices().items()):
        if os.path.realpath(backing) == wanted:
            return device
    return None


def attach(image, loop_device=None):
    """Attach a backing file to a loop device

    :param image: path to the backing file
    :param loop_device: specific loop device to use, the first free one
        otherwise
    :return: the loop device path
    """
    try:
        if loop_device:
            utils.execute('losetup', loop_device, image)
        else:
            out, _err = utils.execute('losetup', '--find', '--show', image)
            loop_device = out.strip()
    except Exception:
        with excutils.save_and_reraise_exception():
            LOG.error("Failed to attach %(image)s to a loop device",
                      {'image': image})
    LOG.info("Attached %(image)s to %(loop)s",
             {'image': image, 'loop': loop_device})
    return loop_device


def detach(loop_device):
    try:
        utils.execute('losetup', '-d', loop_device)
    except Exception:
        with excutils.save_and_reraise_exception():
            LOG.error("Failed to detach loop device %(loop)s",
                      {'loop': loop_device})
    LOG.info("Detached %s", loop_device)


def is_loop_device(device):
    return bool(device) and re.match(r'^/dev/loop\d+$', device) is not None
