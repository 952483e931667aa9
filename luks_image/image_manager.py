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

from oslo_log import log
from oslo_utils import excutils

from luks_image import config
from luks_image import errors
from luks_image import fs_utils
from luks_image import loop_utils
from luks_image import luks_utils as luks

CONF = config.CONF
LOG = log.getLogger(__name__)


def _default_mount_point(name):
    return os.path.join(CONF.mount_root, name)


def _read_passphrase(name, key_file, confirm=False):
    if key_file:
        return None
    return luks.prompt_passphrase(name, confirm=confirm)


def _cleanup_create(name, image, loop_device, opened):
    """Best effort teardown after a failed create

    A signal can land between a tool succeeding and its result being
    recorded, so a mapping or loop device not known to be set up is looked
    up before giving up on it. Errors are logged and dropped so the
    original failure is the one reported.
    """
    try:
        if opened or luks.luks_status(name) is not None:
            luks.luks_close(name)
    except Exception as e:
        LOG.warning("Cleanup: could not close %(name)s: %(err)s",
                    {'name': name, 'err': e})
    try:
        loop_device = loop_device or loop_utils.find_loop_device(image)
        if loop_device:
            loop_utils.detach(loop_device)
    except Exception as e:
        LOG.warning("Cleanup: could not detach the loop device of "
                    "%(image)s: %(err)s", {'image': image, 'err': e})


class ImageManager(object):
    """Creates, opens, closes and lists LUKS encrypted disk images"""

    def create(self, image, name, size, key_size=None, hash_name=None,
               loop_device=None, mount_point=None, key_file=None):
        """Create a new encrypted image and mount it

        The backing file is sparse. Once it exists, any failure (or a
        signal) closes the mapping and detaches the loop device again
        before the error propagates. The file itself is kept.

        :param image: path of the backing file to create
        :param name: device-mapper name for the opened container
        :param size: image size, e.g. ``10G``
        :param key_size: LUKS key size in bits
        :param hash_name: LUKS key derivation hash
        :param loop_device: loop device to use instead of the first free one
        :param mount_point: where to mount, ``<mount_root>/<name>`` if unset
        :param key_file: key file to use instead of a passphrase
        :return: the mount point
        """
        if os.path.exists(image):
            raise errors.ImageExists(image=image)
        active = luks.luks_status(name)
        if active is not None:
            raise errors.MappingActive(name=name,
                                       device=active.get('device', '?'))
        size_bytes = loop_utils.parse_size(size)
        key_size = key_size or CONF.key_size
        hash_name = hash_name or CONF.hash
        mount_point = mount_point or _default_mount_point(name)
        passphrase = _read_passphrase(name, key_file, confirm=True)

        loop_utils.create_sparse_file(image, size_bytes)
        attached = None
        opened = False
        try:
            attached = loop_utils.attach(image, loop_device)
            luks.luks_format(attached, key_size, hash_name,
                             passphrase=passphrase, key_file=key_file)
            device = luks.luks_open(attached, name, passphrase=passphrase,
                                    key_file=key_file)
            opened = True
            if CONF.zero_device:
                fs_utils.zero_device(device)
            fs_utils.make_filesystem(device)
            os.makedirs(mount_point, exist_ok=True)
            fs_utils.mount(device, mount_point)
        except Exception:
            with excutils.save_and_reraise_exception():
                LOG.error("Creating %(image)s as %(name)s failed, cleaning "
                          "up", {'image': image, 'name': name})
                _cleanup_create(name, image, attached, opened)
        LOG.info("Created %(image)s (%(size)d bytes) as %(name)s on "
                 "%(mount_point)s",
                 {'image': image, 'size': size_bytes, 'name': name,
                  'mount_point': mount_point})
        return mount_point

    def mount(self, image, name, mount_point=None, loop_device=None,
              create_mount_point=False, key_file=None):
        """Open an existing image and mount it

        An image already attached to a loop device keeps that device, and a
        mapping already open on it is reused.

        :param image: path of the backing file
        :param name: device-mapper name for the opened container
        :param mount_point: where to mount, ``<mount_root>/<name>`` if unset
        :param loop_device: loop device to use if the image is not attached
        :param create_mount_point: create a missing mount point directory
        :param key_file: key file to use instead of a passphrase
        :return: the mount point
        """
        if not os.path.isfile(image):
            raise errors.ImageNotFound(image=image)
        mount_point = mount_point or _default_mount_point(name)
        if not os.path.isdir(mount_point):
            if not create_mount_point:
                raise errors.MountPointNotFound(mount_point=mount_point)
            os.makedirs(mount_point)

        attached = loop_utils.find_loop_device(image)
        if attached:
            if loop_device and loop_device != attached:
                LOG.warning("%(image)s is already attached to %(attached)s, "
                            "ignoring %(loop)s",
                            {'image': image, 'attached': attached,
                             'loop': loop_device})
            else:
                LOG.info("Reusing loop device %(loop)s for %(image)s",
                         {'loop': attached, 'image': image})
        else:
            attached = loop_utils.attach(image, loop_device)

        device = luks.mapper_path(name)
        active = luks.luks_status(name)
        if active is None:
            passphrase = _read_passphrase(name, key_file)
            luks.luks_open(attached, name, passphrase=passphrase,
                           key_file=key_file)
        elif active.get('device') != attached:
            raise errors.MappingActive(name=name,
                                       device=active.get('device', '?'))
        else:
            LOG.info("%(name)s is already open on %(loop)s",
                     {'name': name, 'loop': attached})

        current = fs_utils.find_mount_point(device)
        if current and (os.path.realpath(current)
                        == os.path.realpath(mount_point)):
            LOG.info("%(device)s is already mounted on %(mount_point)s",
                     {'device': device, 'mount_point': mount_point})
            return mount_point
        if fs_utils.is_mounted(mount_point):
            raise errors.MountPointBusy(mount_point=mount_point)
        fs_utils.mount(device, mount_point)
        return mount_point

    def umount(self, name, mount_point=None):
        """Unmount and close an open image

        The loop device and backing file are recovered from the mapping.

        :param name: device-mapper name of the open container
        :param mount_point: mount point to unmount, discovered if unset
        :return: path of the backing file, None if it could not be found
        """
        status = luks.luks_status(name)
        if status is None:
            raise errors.MappingNotActive(name=name)
        backing_device = status.get('device')
        image = status.get('loop')
        if not image and loop_utils.is_loop_device(backing_device):
            image = loop_utils.list_loop_devices().get(backing_device)

        device = luks.mapper_path(name)
        mount_point = mount_point or fs_utils.find_mount_point(device)
        if mount_point:
            fs_utils.umount(mount_point)
        else:
            LOG.info("%(device)s is not mounted", {'device': device})

        # A busy loop device is released by the kernel once the mapping
        # on top of it is closed.
        if loop_utils.is_loop_device(backing_device):
            loop_utils.detach(backing_device)
        luks.luks_close(name)
        LOG.info("Closed %(name)s (image %(image)s)",
                 {'name': name, 'image': image or '-'})
        return image

    def status(self, name=None):
        """Describe open LUKS images

        :param name: only report this mapping
        :raises: MappingNotActive if ``name`` is given but not open
        :return: list of dicts with name, type, device, image, mount_point
        """
        names = [name] if name else luks.list_crypt_targets()
        loops = None
        records = []
        for target in names:
            status = luks.luks_status(target)
            if status is None or not status.get('type', '').startswith(
                    'LUKS'):
                if name:
                    raise errors.MappingNotActive(name=name)
                continue
            backing_device = status.get('device')
            image = status.get('loop')
            if not image and loop_utils.is_loop_device(backing_device):
                if loops is None:
                    loops = loop_utils.list_loop_devices()
                image = loops.get(backing_device)
            records.append({
                'name': target,
                'type': status.get('type'),
                'device': backing_device,
                'image': image,
                'mount_point': fs_utils.find_mount_point(
                    luks.mapper_path(target)),
            })
        return records
