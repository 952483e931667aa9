# Copyright 2024 Ericsson Software Technology
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may
# not use this file except in compliance with the License. You may obtain
# a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations
# under the License.
"""
LUKS container utilities built on cryptsetup and dmsetup.

"""

import getpass
import logging

from ironic_lib import utils
from oslo_utils import excutils

from luks_image import config
from luks_image import errors

CONF = config.CONF
LOG = logging.getLogger(__name__)

# cryptsetup exits with 4 when the named mapping does not exist
_STATUS_INACTIVE = 4


def prompt_passphrase(name, confirm=False):
    """Read a passphrase for ``name`` from the terminal

    :param name: mapped name, used in the prompt
    :param confirm: ask a second time and compare, for new containers
    :raises: InvalidArgument on an empty passphrase
    :raises: PassphraseMismatch if the confirmation differs
    """
    passphrase = getpass.getpass("Enter passphrase for %s: " % name)
    if not passphrase:
        raise errors.InvalidArgument(details="empty passphrase")
    if confirm:
        again = getpass.getpass("Verify passphrase for %s: " % name)
        if again != passphrase:
            raise errors.PassphraseMismatch(name=name)
    return passphrase


def mapper_path(name):
    return '/dev/mapper/' + name


def _key_args(passphrase, key_file):
    if key_file:
        return ['--key-file', key_file], {}
    return ['--key-file', '-'], {'process_input': passphrase}


def luks_format(device, key_size, hash_name, passphrase=None,
                key_file=None):
    """Write a new LUKS header to a block device

    :param device: the device path of the block device, usually a loop device
    :param key_size: key size in bits
    :param hash_name: hash used for the key derivation
    :param passphrase: passphrase fed to cryptsetup over stdin
    :param key_file: key file used instead of a passphrase
    """
    key_args, kwargs = _key_args(passphrase, key_file)
    try:
        utils.execute('cryptsetup', '--batch-mode', 'luksFormat',
                      '--type', CONF.luks_type,
                      '--cipher', CONF.cipher,
                      '--key-size', str(key_size),
                      '--hash', hash_name,
                      *key_args, device, **kwargs)
    except Exception:
        with excutils.save_and_reraise_exception():
            LOG.error("ERROR: LUKS format has failed for %(device)s",
                      {'device': device})


def luks_open(device, name, passphrase=None, key_file=None):
    """Unlock a LUKS encrypted block device

    :param device: the device path of the encrypted block device
    :param name: name of the device-mapper target to create
    :param passphrase: passphrase fed to cryptsetup over stdin
    :param key_file: key file used instead of a passphrase
    :return: path of the unlocked device
    """
    key_args, kwargs = _key_args(passphrase, key_file)
    try:
        utils.execute('cryptsetup', 'open', '--type', 'luks',
                      *key_args, device, name, **kwargs)
    except Exception:
        with excutils.save_and_reraise_exception():
            LOG.error("ERROR: Failed to open encrypted device %(device)s", {
                      'device': device})
    return mapper_path(name)


def luks_close(name):
    try:
        utils.execute('cryptsetup', 'close', name)
    except Exception:
        with excutils.save_and_reraise_exception():
            LOG.error("ERROR: Failed to close mapping %(name)s",
                      {'name': name})


def luks_status(name):
    """Describe an active mapping

    Parses the ``key: value`` lines of ``cryptsetup status``, for example
    ``type``, ``cipher``, ``device`` (the underlying block device) and
    ``loop`` (the backing file when the device is a loop device).

    :param name: the mapped name
    :return: dict of status fields, or None if the mapping is inactive
    """
    out, _err = utils.execute('cryptsetup', 'status', name,
                              check_exit_code=[0, _STATUS_INACTIVE])
    lines = out.splitlines()
    if not lines or 'inactive' in lines[0]:
        return None
    status = {}
    for line in lines[1:]:
        key, sep, value = line.partition(':')
        if sep:
            status[key.strip()] = value.strip()
    return status


def list_crypt_targets():
    """Names of all active device-mapper crypt targets."""
    out, _err = utils.execute('dmsetup', 'ls', '--target', 'crypt')
    names = []
    for line in out.splitlines():
        line = line.strip()
        if not line or line.startswith('No devices found'):
            continue
        names.append(line.split()[0])
    return names
